from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class GenerationParams:
    temperature: float
    max_output_tokens: int


# Feedback and arrangement compare code against a reference, so they run colder.
PARAMS: dict[str, GenerationParams] = {
    "quest": GenerationParams(temperature=0.7, max_output_tokens=2000),
    "feedback": GenerationParams(temperature=0.3, max_output_tokens=1000),
    "hint": GenerationParams(temperature=0.7, max_output_tokens=500),
    "arrangement": GenerationParams(temperature=0.3, max_output_tokens=1500),
}

PROMPTS: dict[str, dict[str, Any]] = {
    "questGeneration": {
        "system": """You are an excellent programming education AI. Generate step-by-step learning quests that beginners can follow.

Follow these principles:
1. Difficulty matched to the learner's level
2. A practical, meaningful implementation goal
3. Clear, easy-to-follow instructions
4. Hints aimed at the places learners usually get stuck
5. Steps that let the learner succeed early and often""",
        "user": """Generate a step-by-step learning quest from the information below.

Article URL: {articleUrl}
Implementation goal: {implementationGoal}
Difficulty: {difficulty}
Project name: {projectName}
Project description: {projectDescription}

Requirements:

1. Quest:
   - title: engaging, with a clear learning goal
   - description: what will be learned and implemented

2. Steps (3-5):
   - Step 1: ARRANGE_CODE (understand the code by ordering blocks)
   - Steps 2-4: IMPLEMENT_CODE (actual implementation)
   - Final step: VERIFY_OUTPUT (check that it works)

3. Each step:
   - title: the goal of the step
   - description: detailed instructions
   - type: the step type
   - expectedCode: the expected code (implementation steps only)
   - hints: 2-3 hints for when the learner is stuck

Answer with JSON only:

{
  "title": "Quest title",
  "description": "Quest description",
  "steps": [
    {
      "title": "Step title",
      "description": "Step description",
      "type": "ARRANGE_CODE",
      "hints": ["Hint 1", "Hint 2"]
    }
  ]
}""",
        "fallbackResponse": {
            "title": "Implement {implementationGoal}",
            "description": (
                "A quest to implement {implementationGoal} using the article at {articleUrl} as a guide. "
                "Work through it step by step to build practical skills."
            ),
            "steps": [
                {
                    "title": "Understand the code",
                    "description": "Read the article's sample code and put it in the right order.",
                    "type": "ARRANGE_CODE",
                    "hints": [
                        "Start with the variable definitions",
                        "Think about the order in which functions are called",
                        "Follow the flow of the article",
                    ],
                },
                {
                    "title": "Implement the basics",
                    "description": "Implement the core of {implementationGoal}.",
                    "type": "IMPLEMENT_CODE",
                    "expectedCode": "// implement here",
                    "hints": [
                        "Use the article's sample code as a reference",
                        "Read the error messages carefully",
                        "Implement one piece at a time",
                    ],
                },
                {
                    "title": "Check the result",
                    "description": "Make sure the feature you implemented works as expected.",
                    "type": "VERIFY_OUTPUT",
                    "hints": [
                        "Check that the result appears in the console",
                        "Check that no errors are raised",
                        "Compare the output with what you expected",
                    ],
                },
            ],
        },
    },
    "codeFeedback": {
        "system": """You are an experienced programming instructor. Evaluate the learner's code and give constructive feedback.

Evaluate:
1. Correctness and behaviour
2. Adherence to best practices
3. Readability and maintainability
4. Error handling
5. Concrete suggestions for better ways to write it""",
        "user": """Evaluate the following code:

Submitted code:
{submittedCode}

Expected code (reference):
{expectedCode}

File path: {filePath}

Return the feedback as JSON in this format:
{
  "score": 0-100,
  "feedback": "Overall comment",
  "improvements": ["Improvement 1", "Improvement 2"],
  "hints": ["Hint 1", "Hint 2"],
  "errors": [
    {
      "type": "syntax|logic|style|missing",
      "line": line number,
      "message": "Details of the problem",
      "suggestion": "How to fix it"
    }
  ]
}""",
    },
    "hintGeneration": {
        "system": """You are a kind programming mentor. Give the learner hints for the place where they are stuck.

Principles:
1. Point in a direction instead of giving the answer
2. Order hints so understanding builds up gradually
3. Keep the advice concrete and actionable
4. Explain at the learner's current level""",
        "user": """The learner is stuck in the following situation. Give suitable hints:

Current code: {currentCode}
Error message: {errorMessage}
Step goal: {stepGoal}
Difficulty: {difficulty}

Return three hints as JSON:
{
  "hints": [
    "What to check first",
    "An approach to try next",
    "A hint towards the final solution"
  ]
}""",
    },
    "codeArrangement": {
        "system": """You create code-ordering puzzles for programming learners. Build an effective ordering puzzle from the given code.

Principles:
1. The logical flow of the program should become clear
2. Beginners should be able to solve it step by step
3. Execution order and dependencies should be visible
4. The solved puzzle must be working code""",
        "user": """Create an ordering puzzle from the following code:

Original code: {originalCode}
Learning goal: {learningGoal}

Return JSON in this format:
{
  "title": "Puzzle title",
  "description": "Puzzle description and learning goal",
  "shuffledBlocks": [
    {
      "id": "block1",
      "code": "code block 1",
      "correctOrder": 1
    }
  ],
  "hints": [
    "A hint about execution order",
    "A hint about dependencies between variables and functions"
  ]
}""",
    },
}

FALLBACK_FEEDBACK: dict[str, Any] = {
    "score": 50,
    "feedback": "Automatic review is unavailable right now. Compare your code with the expected code and look for differences.",
    "improvements": [
        "Check that variable and function names are descriptive",
        "Make sure every branch of your logic is handled",
        "Remove code that is not used",
    ],
    "hints": [
        "Run the code and read any error messages",
        "Compare your code with the expected code line by line",
        "Test with a few different inputs",
    ],
    "errors": [],
}

FALLBACK_HINTS: list[str] = [
    "Read the error message carefully and find the line it points to",
    "Check the values of your variables just before the failing line",
    "Split the problem into smaller pieces and test each one",
]

FALLBACK_ARRANGEMENT_HINTS: list[str] = [
    "Variables must be defined before they are used",
    "Think about the order in which functions are called",
    "Read the code from top to bottom as the program would run it",
]

SECTION_BY_KIND = {
    "quest": "questGeneration",
    "feedback": "codeFeedback",
    "hint": "hintGeneration",
    "arrangement": "codeArrangement",
}
