"""AWS Lambda handler for the concert calendar sync."""
import json
import logging
import time
from typing import Any, Dict

from concerts.manager import ConcertManager
from config import SyncConfig

ACTIONS = ('upcoming', 'past', 'refresh', 'sweep', 'status', 'sync')
DEFAULT_ACTION = 'sync'


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Send all log records to stderr as JSON lines.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Create new handler with JSON formatter
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    # Set log level
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def _concert_body(message: str, concerts, state) -> Dict[str, Any]:
    return {
        'message': message,
        'state': state.value if state else None,
        'count': len(concerts),
        'concerts': [concert.to_dict() for concert in concerts],
    }


def run_action(manager: ConcertManager, action: str) -> Dict[str, Any]:
    """
    Run one manager operation and build the response body.

    Args:
        manager: Concert manager
        action: One of ACTIONS

    Returns:
        Response body dict
    """
    if action == 'upcoming':
        concerts = manager.load_concerts()
        return _concert_body('Upcoming concerts loaded', concerts, manager.last_upcoming_state)

    if action == 'past':
        concerts = manager.load_past_concerts()
        return _concert_body('Past concerts loaded', concerts, manager.last_past_state)

    if action == 'refresh':
        concerts = manager.force_refresh()
        return _concert_body('Upcoming concerts refreshed', concerts, manager.last_upcoming_state)

    if action == 'status':
        return {'message': 'Status', 'status': manager.get_status().to_dict()}

    if action == 'sweep':
        # Sweep what is already cached; never calls the calendar API
        manager.load_cached_concerts()
        sweep = manager.check_and_move_expired_concerts()
        return {
            'message': 'Expired check completed',
            'sweep': sweep.to_dict(),
            'status': manager.get_status().to_dict(),
        }

    # Full sync: past list, then upcoming list and sweep
    sweep = manager.sync()
    return {
        'message': 'Sync completed successfully',
        'sweep': sweep.to_dict() if sweep else None,
        'status': manager.get_status().to_dict(),
        'upcoming': [concert.to_dict() for concert in manager.upcoming_concerts],
        'past': [concert.to_dict() for concert in manager.past_concerts],
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler.

    The ``action`` key of the event selects the operation; scheduled
    EventBridge invocations carry none and run a full sync.

    Args:
        event: Invocation payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and a JSON body
    """
    # Read configuration from environment variables
    config = SyncConfig.from_env()

    # Initialize logging
    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    action = (event or {}).get('action') or DEFAULT_ACTION
    start_time = time.time()

    # Reject unknown actions before touching the cache
    if action not in ACTIONS:
        logger.warning(f"Unknown action: {action}")
        return _response(400, {
            'message': f"Unknown action '{action}'",
            'actions': list(ACTIONS),
        })

    logger.info(f"Lambda execution started: {action}")

    try:
        # Instantiate components and run the action
        manager = ConcertManager.from_config(config)
        body = run_action(manager, action)
    except Exception as e:
        # Log error
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _response(500, {
            'message': 'Concert sync failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })

    # Log execution summary
    duration = time.time() - start_time
    body['duration_seconds'] = round(duration, 2)
    logger.info(f"Lambda execution completed: {action} in {duration:.2f}s")
    return _response(200, body)
