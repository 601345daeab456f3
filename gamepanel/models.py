from gamepanel import db
from datetime import datetime, timezone
import json
import time

GAME_STATE_ID = 1

DEFAULT_ROUND_NAME = 'Mission Alpha'
DEFAULT_ROUND_DETAILS = (
    'Complete all tasks to prepare the spaceship for departure. '
    'Work together as a team, but beware of impostors among you!'
)
DEFAULT_NEXT_ROUND_NAME = 'Mission Beta'
DEFAULT_NEXT_ROUND_DETAILS = (
    'New challenges await! Complete the reactor tasks and identify '
    'the impostor before time runs out.'
)
DEFAULT_CURRENT_TIMER = 300
DEFAULT_NEXT_TIMER = 180
DEFAULT_NEXT_ROUND_TIMER = 300
DEFAULT_TOTAL_ROUNDS = 4

GAME_STATUSES = ('waiting', 'countdown', 'countdown_finished', 'active', 'paused', 'ended')
HISTORY_STATUSES = ('completed', 'incomplete', 'cancelled')
PARTICIPANT_STATUSES = ('Alive', 'Eliminated')

ACTION_KINDS = (
    'start_countdown', 'pause_countdown', 'resume_countdown', 'reset_countdown', 'countdown_finished',
    'start_game', 'pause_game', 'resume_game', 'reset_game', 'end_game', 'auto_advance',
    'start_next_round', 'start_next_round_early',
    'set_timers', 'set_countdown', 'update_settings', 'update_round_info',
    'update_current_round', 'update_next_round',
)


def to_iso(ts):
    """Render an epoch-seconds value as ISO-8601 UTC, or None."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _load_list(raw):
    try:
        value = json.loads(raw) if raw else []
    except (TypeError, ValueError):
        value = []
    return value if isinstance(value, list) else []


def normalize_attachments(items):
    """Keep the attachment keys the panel knows about; anything else is dropped."""
    cleaned = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        cleaned.append({
            'name': item.get('name'),
            'url': item.get('url'),
            'type': item.get('type'),
            'size': item.get('size'),
            'isLink': bool(item.get('isLink', False)),
        })
    return cleaned


class GameState(db.Model):
    __tablename__ = 'game_state'
    id = db.Column(db.Integer, primary_key=True)
    version = db.Column(db.Integer, nullable=False)

    round_name = db.Column(db.String(200), nullable=False, default=DEFAULT_ROUND_NAME)
    round_details = db.Column(db.Text, nullable=False, default=DEFAULT_ROUND_DETAILS)
    attachments_json = db.Column(db.Text, nullable=True)
    current_timer = db.Column(db.Integer, nullable=False, default=DEFAULT_CURRENT_TIMER)
    next_timer = db.Column(db.Integer, nullable=False, default=DEFAULT_NEXT_TIMER)
    # Epoch seconds; set only while a round is running (or paused mid-run)
    round_start_time = db.Column(db.Float, nullable=True)
    paused_remaining = db.Column(db.Integer, nullable=True)
    cooldown_end_time = db.Column(db.Float, nullable=True)

    # Pre-game countdown
    countdown_days = db.Column(db.Integer, nullable=False, default=0)
    countdown_hours = db.Column(db.Integer, nullable=False, default=0)
    countdown_minutes = db.Column(db.Integer, nullable=False, default=0)
    countdown_seconds = db.Column(db.Integer, nullable=False, default=0)
    countdown_is_active = db.Column(db.Boolean, nullable=False, default=False)
    countdown_is_paused = db.Column(db.Boolean, nullable=False, default=False)
    countdown_start_time = db.Column(db.Float, nullable=True)
    countdown_original_duration = db.Column(db.Integer, nullable=True)
    countdown_finished_at = db.Column(db.Float, nullable=True)

    # Queued round, promoted on advancement
    next_round_name = db.Column(db.String(200), nullable=False, default=DEFAULT_NEXT_ROUND_NAME)
    next_round_details = db.Column(db.Text, nullable=False, default=DEFAULT_NEXT_ROUND_DETAILS)
    next_round_attachments_json = db.Column(db.Text, nullable=True)
    next_round_timer = db.Column(db.Integer, nullable=False, default=DEFAULT_NEXT_ROUND_TIMER)

    current_round = db.Column(db.Integer, nullable=False, default=1)
    total_rounds = db.Column(db.Integer, nullable=False, default=DEFAULT_TOTAL_ROUNDS)
    game_status = db.Column(db.String(32), nullable=False, default='waiting')  # see GAME_STATUSES
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    last_updated = db.Column(db.Float, nullable=False, default=time.time)

    # Every UPDATE is conditional on the version we read
    __mapper_args__ = {'version_id_col': version}

    @property
    def attachments(self):
        return _load_list(self.attachments_json)

    @attachments.setter
    def attachments(self, items):
        self.attachments_json = json.dumps(normalize_attachments(items))

    @property
    def next_round_attachments(self):
        return _load_list(self.next_round_attachments_json)

    @next_round_attachments.setter
    def next_round_attachments(self, items):
        self.next_round_attachments_json = json.dumps(normalize_attachments(items))

    @property
    def is_active(self):
        return self.game_status == 'active'

    @property
    def current_round_started(self):
        return self.round_start_time is not None and self.game_status in ('active', 'paused')

    @property
    def countdown_finished(self):
        return self.countdown_finished_at is not None

    def countdown_to_dict(self):
        return {
            'days': self.countdown_days,
            'hours': self.countdown_hours,
            'minutes': self.countdown_minutes,
            'seconds': self.countdown_seconds,
            'isActive': self.countdown_is_active,
            'isPaused': self.countdown_is_paused,
            'startTime': to_iso(self.countdown_start_time),
            'originalDuration': self.countdown_original_duration,
            'finishedAt': to_iso(self.countdown_finished_at),
        }

    def next_round_to_dict(self):
        return {
            'name': self.next_round_name,
            'details': self.next_round_details,
            'attachments': self.next_round_attachments,
            'timer': self.next_round_timer,
        }

    def to_dict(self):
        return {
            'roundName': self.round_name,
            'roundDetails': self.round_details,
            'attachments': self.attachments,
            'currentTimer': self.current_timer,
            'nextTimer': self.next_timer,
            'roundStartTime': to_iso(self.round_start_time),
            'pausedRemaining': self.paused_remaining,
            'cooldownEndTime': to_iso(self.cooldown_end_time),
            'preGameCountdown': self.countdown_to_dict(),
            'nextRound': self.next_round_to_dict(),
            'currentRound': self.current_round,
            'totalRounds': self.total_rounds,
            'gameStatus': self.game_status,
            'isActive': self.is_active,
            'countdownFinished': self.countdown_finished,
            'currentRoundStarted': self.current_round_started,
            'lastUpdated': to_iso(self.last_updated),
            'version': self.version,
        }


class RoundHistory(db.Model):
    __tablename__ = 'round_history'
    id = db.Column(db.Integer, primary_key=True)
    round_number = db.Column(db.Integer, nullable=False)
    round_name = db.Column(db.String(200), nullable=False)
    round_details = db.Column(db.Text, nullable=False)
    duration = db.Column(db.Integer, nullable=False)  # seconds
    start_time = db.Column(db.Float, nullable=False)
    end_time = db.Column(db.Float, nullable=True)
    attachments_json = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default='completed')  # see HISTORY_STATUSES
    created_at = db.Column(db.Float, nullable=False, default=time.time, index=True)

    @property
    def attachments(self):
        return _load_list(self.attachments_json)

    def to_dict(self):
        return {
            'id': self.id,
            'roundNumber': self.round_number,
            'roundName': self.round_name,
            'roundDetails': self.round_details,
            'duration': self.duration,
            'startTime': to_iso(self.start_time),
            'endTime': to_iso(self.end_time),
            'attachments': self.attachments,
            'status': self.status,
        }


class AdminAction(db.Model):
    __tablename__ = 'admin_action'
    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(64), nullable=False)  # see ACTION_KINDS
    details = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.Float, nullable=False, default=time.time, index=True)
    game_state_json = db.Column(db.Text, nullable=True)

    @property
    def game_state(self):
        try:
            return json.loads(self.game_state_json) if self.game_state_json else None
        except (TypeError, ValueError):
            return None

    def to_dict(self):
        return {
            'id': self.id,
            'action': self.action,
            'details': self.details,
            'timestamp': to_iso(self.timestamp),
            'gameState': self.game_state,
        }


class Participant(db.Model):
    __tablename__ = 'participant'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    roll_number = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    college = db.Column(db.String(200), nullable=False, index=True)
    branch = db.Column(db.String(120), nullable=False)
    year = db.Column(db.String(16), nullable=False)
    degree = db.Column(db.String(64), nullable=False)
    team = db.Column(db.String(120), nullable=True, index=True)
    avatar = db.Column(db.String(120), nullable=False, default='blue.png')
    status = db.Column(db.String(16), nullable=False, default='Alive', index=True)  # Alive, Eliminated
    eliminated_at = db.Column(db.Float, nullable=True)
    registered_at = db.Column(db.Float, nullable=False, default=time.time)
    last_updated = db.Column(db.Float, nullable=False, default=time.time, onupdate=time.time)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'rollNumber': self.roll_number,
            'email': self.email,
            'phone': self.phone,
            'college': self.college,
            'branch': self.branch,
            'year': self.year,
            'degree': self.degree,
            'team': self.team,
            'avatar': self.avatar,
            'status': self.status,
            'eliminatedAt': to_iso(self.eliminated_at),
            'registeredAt': to_iso(self.registered_at),
            'lastUpdated': to_iso(self.last_updated),
        }
