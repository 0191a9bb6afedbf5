from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys

from .config import Settings, load_settings
from .db import ensure_schema, make_engine, make_sessionmaker
from .errors import InvalidTransitionError, PersistenceError, QuestConflictError, QuestNotFoundError, ValidationError
from .generator import GenerationOrchestrator
from .i18n import format_duration, t
from .llm import LLMClient
from .quest_service import QuestService
from .quest_store import SqlQuestRepository
from .sync import QuestEventHub
from .types import QuestFilter, ProjectRef

logger = logging.getLogger(__name__)

_FAILURE_KEYS = {
    "start": "start_failed",
    "pause": "pause_failed",
    "resume": "resume_failed",
    "complete-step": "progress_failed",
    "track-time": "progress_failed",
}


def _build_llm(settings: Settings) -> LLMClient | None:
    if not settings.gemini_api_key:
        return None
    return LLMClient(settings.gemini_api_key, model=settings.llm_model)


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="codeclimb")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db")

    gen = sub.add_parser("generate")
    gen.add_argument("--article-url", required=True)
    gen.add_argument("--goal", required=True)
    gen.add_argument("--difficulty", default="MEDIUM", choices=["EASY", "MEDIUM", "HARD"])
    gen.add_argument("--project-id", default="local")
    gen.add_argument("--project-name", default="")
    gen.add_argument("--project-description", default="")
    gen.add_argument("--project-path", default="")
    gen.add_argument("--tag", action="append", default=[])

    for name in ("start", "pause", "resume"):
        p = sub.add_parser(name)
        p.add_argument("quest_id")

    step = sub.add_parser("complete-step")
    step.add_argument("quest_id")
    step.add_argument("step_id")
    step.add_argument("--undo", action="store_true", default=False)

    track = sub.add_parser("track-time")
    track.add_argument("quest_id")
    track.add_argument("step_id")
    track.add_argument("seconds", type=int)

    lst = sub.add_parser("list")
    lst.add_argument("--status", choices=["PENDING", "IN_PROGRESS", "COMPLETED", "PAUSED"])
    lst.add_argument("--difficulty", choices=["EASY", "MEDIUM", "HARD"])
    lst.add_argument("--tag")

    sub.add_parser("stats")
    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    engine = make_engine(settings)
    try:
        if args.command == "init-db":
            await ensure_schema(engine, settings.database_url)
            print("ok")
            return 0

        service = QuestService(SqlQuestRepository(make_sessionmaker(engine)), QuestEventHub())
        lang = settings.ui_lang
        try:
            if args.command == "generate":
                generator = GenerationOrchestrator(_build_llm(settings), timeout_sec=settings.llm_timeout_sec)
                quest = await service.create_from_article(
                    generator,
                    article_url=args.article_url,
                    implementation_goal=args.goal,
                    difficulty=args.difficulty,
                    project=ProjectRef(id=args.project_id, name=args.project_name, path=args.project_path),
                    project_description=args.project_description,
                    tags=args.tag,
                )
            elif args.command == "start":
                quest = await service.start_quest(args.quest_id)
            elif args.command == "pause":
                quest = await service.pause_quest(args.quest_id)
            elif args.command == "resume":
                quest = await service.resume_quest(args.quest_id)
            elif args.command == "complete-step":
                quest = await service.set_step_completion(args.quest_id, args.step_id, not args.undo)
            elif args.command == "track-time":
                quest = await service.add_time_spent(args.quest_id, args.step_id, args.seconds)
            elif args.command == "list":
                quests = await service.list_quests(
                    QuestFilter(status=args.status, difficulty=args.difficulty, tag=args.tag)
                )
                _print_json([q.to_dict() for q in quests])
                return 0
            else:
                stats = await service.get_stats()
                data = dataclasses.asdict(stats)
                data["recent_completions"] = [q.to_dict() for q in stats.recent_completions]
                data["total_time_spent_label"] = format_duration(stats.total_time_spent, lang)
                _print_json(data)
                return 0
        except ValidationError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 2
        except InvalidTransitionError as exc:
            print(f"{t(_FAILURE_KEYS.get(args.command, 'progress_failed'), lang)} ({exc.code}: {exc})", file=sys.stderr)
            return 2
        except QuestNotFoundError as exc:
            print(f"{t('load_failed', lang)} ({exc})", file=sys.stderr)
            return 3
        except QuestConflictError as exc:
            print(f"{t('conflict', lang)} ({exc})", file=sys.stderr)
            return 3
        except PersistenceError as exc:
            print(f"{t(_FAILURE_KEYS.get(args.command, 'load_failed'), lang)} ({exc})", file=sys.stderr)
            return 3
        _print_json(quest.to_dict())
        return 0
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
