import argparse
import datetime
import json
import logging
from typing import Optional

from coach import CoachingCore
from config import YamlConfig, load_settings
from models import (
    SessionStatus,
    SetFeedback,
    WeightUsage,
    WorkoutFeedback,
    to_plain,
    utcnow,
)


def _print(data) -> None:
    print(json.dumps(to_plain(data), indent=2, ensure_ascii=False))


def build_core(config_path: Optional[str], db_path: Optional[str]) -> CoachingCore:
    settings = load_settings(YamlConfig(config_path))
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return CoachingCore(settings, db_path=db_path)


def demo_data(core: CoachingCore, user_id: int = 1) -> None:
    """Populate the database with two weeks of demo training if empty."""
    now = utcnow()
    if core.sessions.fetch_range(user_id, now - datetime.timedelta(days=30), now):
        print("Database already contains sessions")
        return
    push = core.plans.create(user_id, "Push")
    legs = core.plans.create(user_id, "Legs")
    for offset, plan, exercise, weight in [
        (13, push, "Bench Press", 60.0),
        (11, legs, "Squat", 80.0),
        (9, push, "Bench Press", 62.5),
        (6, legs, "Squat", 82.5),
        (4, push, "Bench Press", 62.5),
        (2, legs, "Squat", 85.0),
    ]:
        started = now - datetime.timedelta(days=offset, hours=2)
        sid = core.sessions.create(
            user_id,
            started,
            SessionStatus.COMPLETED,
            started + datetime.timedelta(minutes=55),
            plan,
        )
        for set_number in range(1, 4):
            log_id = core.logs.add(sid, exercise, set_number, 8, weight, 120)
            core.learning.record_set_feedback(
                user_id,
                SetFeedback(log_id, 7 + set_number // 3, "perfect", created_at=started),
            )
        core.workout_feedback.save(
            sid, WorkoutFeedback(rpe=7, satisfaction=4, fatigue=3, progress_feeling=4)
        )
        core.weights.record_weight_used(
            user_id, WeightUsage(exercise, weight, weight, "perfect", 7, 8, 3, sid)
        )
    print("Demo data inserted")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Training analytics commands")
    parser.add_argument("--config", default=None)
    parser.add_argument("--db", default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    sug = sub.add_parser("suggest")
    sug.add_argument("--user", type=int, required=True)
    sug.add_argument("--exercise", required=True)

    rec = sub.add_parser("record-weight")
    rec.add_argument("--user", type=int, required=True)
    rec.add_argument("--exercise", required=True)
    rec.add_argument("--suggested", type=float, required=True)
    rec.add_argument("--actual", type=float, required=True)
    rec.add_argument("--feeling", choices=["too_light", "perfect", "too_heavy"])
    rec.add_argument("--rpe", type=int)

    fb = sub.add_parser("feedback")
    fb.add_argument("--user", type=int, required=True)
    fb.add_argument("--rpe", type=int)
    fb.add_argument("--satisfaction", type=int)
    fb.add_argument("--fatigue", type=int)

    metrics = sub.add_parser("metrics")
    metrics.add_argument("--user", type=int, required=True)
    metrics.add_argument("--days", type=int, default=None)

    ana = sub.add_parser("analyze")
    ana.add_argument("--user", type=int, required=True)

    dec = sub.add_parser("decide")
    dec.add_argument("--analysis", type=int, required=True)
    dec.add_argument("--decision", choices=["accepted", "rejected"], required=True)
    dec.add_argument("--feedback")

    ideas = sub.add_parser("suggestions")
    ideas.add_argument("--user", type=int, required=True)

    trans = sub.add_parser("transition")
    trans.add_argument("--user", type=int, required=True)
    trans.add_argument("--from", dest="from_phase", required=True)
    trans.add_argument("--to", dest="to_phase", required=True)

    ins = sub.add_parser("insights")
    ins.add_argument("--user", type=int, required=True)

    sweep = sub.add_parser("sweep")
    sweep.add_argument("--user", type=int, action="append")

    rep = sub.add_parser("report")
    rep.add_argument("kind", choices=["weekly", "monthly", "progress"])
    rep.add_argument("--user", type=int, required=True)
    rep.add_argument("--save", action="store_true")

    demo = sub.add_parser("demo")
    demo.add_argument("--user", type=int, default=1)

    args = parser.parse_args(argv)
    core = build_core(args.config, args.db)

    if args.cmd == "suggest":
        _print(core.weights.get_suggestion(args.user, args.exercise))
    elif args.cmd == "record-weight":
        usage = WeightUsage(args.exercise, args.suggested, args.actual, args.feeling, args.rpe)
        print(core.weights.record_weight_used(args.user, usage))
        core.weights.invalidate(args.user, args.exercise)
    elif args.cmd == "feedback":
        feedback = WorkoutFeedback(
            rpe=args.rpe, satisfaction=args.satisfaction, fatigue=args.fatigue
        )
        _print(core.learning.update_user_preferences(args.user, feedback))
    elif args.cmd == "metrics":
        days = args.days or core.settings.analytics_window_days
        _print(
            {
                "progress": core.analytics.compute_progress(args.user, days),
                "adherence": core.analytics.compute_adherence(args.user, days),
                "effectiveness": core.analytics.compute_effectiveness(args.user, days),
            }
        )
    elif args.cmd == "analyze":
        _print(core.periodization.analyze_stagnation(args.user))
    elif args.cmd == "decide":
        core.periodization.update_user_decision(args.analysis, args.decision, args.feedback)
        print(f"Analysis {args.analysis} {args.decision}")
    elif args.cmd == "suggestions":
        _print(core.periodization.generate_intelligent_suggestions(args.user))
    elif args.cmd == "transition":
        _print(
            core.periodization.generate_transition_plan(
                args.user, args.from_phase, args.to_phase
            )
        )
    elif args.cmd == "insights":
        _print(core.learning.generate_insights(args.user))
    elif args.cmd == "sweep":
        results = core.learning.run_learning_sweep(
            args.user, max_workers=core.settings.sweep_workers
        )
        _print(list(results.values()))
    elif args.cmd == "report":
        if args.kind == "weekly":
            report = core.reporting.generate_weekly_report(args.user)
            if args.save:
                core.reporting.save_weekly_report(report)
            _print(report)
        elif args.kind == "monthly":
            _print(core.reporting.generate_monthly_report(args.user))
        else:
            _print(core.reporting.weekly_progress(args.user))
    elif args.cmd == "demo":
        demo_data(core, args.user)


if __name__ == "__main__":
    main()
