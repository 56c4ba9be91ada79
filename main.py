import argparse
import json
import logging
import os
import signal
import sys
import time

from core.app_context import AppContext
from core.config_loader import load_config
from core.exceptions import MatchingException
from core.models import parse_bulk_request, parse_criteria
from core.queue import QueueStatus

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
running = True


def signal_handler(sig, frame):
    global running
    logger.info("Shutdown signal received")
    running = False


def parse_weights(raw: str):
    """Parse 'skills=0.5,accessibility=0.3' into a dict."""
    if not raw:
        return None
    weights = {}
    for part in raw.split(","):
        key, _, value = part.partition("=")
        try:
            weights[key.strip()] = float(value)
        except ValueError:
            weights[key.strip()] = value
    return weights


def print_json(data):
    print(json.dumps(data, indent=2, default=str))


def run_match(ctx: AppContext, args):
    """Single pair when --candidate is given, otherwise the whole candidate pool against the job."""
    weights = parse_weights(args.weights)
    if args.candidate:
        result = ctx.matcher.match_single(args.candidate, args.job, weights)
        print_json(result.to_dict())
        return

    criteria = parse_criteria({
        'job_id': args.job,
        'weight_overrides': weights,
        'min_score': args.min_score,
        'user_id': args.user,
    })
    results = ctx.matcher.run_job_matching(criteria)
    logger.info(f"{len(results)} matches for job {args.job}")
    print_json([r.to_dict() for r in results])


def run_bulk(ctx: AppContext, args):
    """Submit a bulk request and wait for it, cancelling on SIGINT/SIGTERM."""
    request = parse_bulk_request({
        'job_ids': args.jobs,
        'criteria': {
            'weight_overrides': parse_weights(args.weights),
            'min_score': args.min_score,
            'user_id': args.user,
        },
        'priority': args.priority,
        'notify_on_completion': args.notify,
    })
    snapshot = ctx.queue.submit_bulk(request)
    logger.info(f"Bulk entry {snapshot.id}: {snapshot.total_jobs} pairs queued")

    cancelled = False
    while True:
        snapshot = ctx.queue.wait(snapshot.id, timeout=1.0)
        if snapshot.status not in (QueueStatus.QUEUED, QueueStatus.PROCESSING):
            break
        if not running and not cancelled:
            ctx.queue.cancel(snapshot.id)
            cancelled = True
        logger.info(f"Bulk entry {snapshot.id}: {snapshot.progress:.1f}% ({snapshot.failed_jobs} failed)")

    logger.info(
        f"Bulk entry {snapshot.id} {snapshot.status.value}: "
        f"{snapshot.processed_jobs} matched, {snapshot.failed_jobs} failed"
    )
    print_json(snapshot.to_dict())


def run_stats(ctx: AppContext, args):
    stats = ctx.stats.compute_stats(job_ids=args.jobs, period_days=args.period_days, use_cache=False)
    output = {'stats': stats.to_dict()}
    if args.insights:
        output['insights'] = [i.to_dict() for i in ctx.stats.generate_insights(job_ids=args.jobs, use_cache=False)]
    print_json(output)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Candidate/job matching engine")
    parser.add_argument('--config', type=str, default='config.yaml', help='Path to config.yaml')
    subparsers = parser.add_subparsers(dest='command', required=True)

    serve = subparsers.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', type=str, default=None)
    serve.add_argument('--port', type=int, default=None)

    match = subparsers.add_parser('match', help='Match candidates against a job')
    match.add_argument('--job', type=str, required=True)
    match.add_argument('--candidate', type=str, default=None, help='Score a single pair')
    match.add_argument('--weights', type=str, default=None, help='e.g. skills=0.5,accessibility=0.3')
    match.add_argument('--min-score', type=int, default=None)
    match.add_argument('--user', type=str, default=None, help="Apply this user's saved preferences")

    bulk = subparsers.add_parser('bulk', help='Queue matching for several jobs and wait')
    bulk.add_argument('--jobs', type=str, nargs='+', required=True)
    bulk.add_argument('--weights', type=str, default=None)
    bulk.add_argument('--min-score', type=int, default=None)
    bulk.add_argument('--user', type=str, default=None, help="Apply this user's saved preferences")
    bulk.add_argument('--priority', type=str, choices=['low', 'normal', 'high'], default='normal')
    bulk.add_argument('--notify', action='store_true', help='Hand off a completion event')

    stats = subparsers.add_parser('stats', help='Print matching statistics')
    stats.add_argument('--jobs', type=str, nargs='*', default=None)
    stats.add_argument('--period-days', type=int, default=None)
    stats.add_argument('--insights', action='store_true')

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.command == 'serve':
        from web.backend.app import main as serve
        os.environ.setdefault("MATCHING_CONFIG", args.config)
        serve(host=args.host, port=args.port)
        return 0

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config(args.config)
    ctx = AppContext.build(config)
    start = time.time()
    try:
        if args.command == 'match':
            run_match(ctx, args)
        elif args.command == 'bulk':
            run_bulk(ctx, args)
        elif args.command == 'stats':
            run_stats(ctx, args)
    except MatchingException as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        ctx.shutdown()
        logger.info(f"{args.command} finished in {time.time() - start:.2f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
