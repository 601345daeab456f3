"""Round/timer state machine for the single live game.

All advancement is lazy: a read that observes an expired timer performs the
transition itself, inside the same transaction that returns the state.
Writes are compare-and-swap on ``GameState.version`` so two readers racing on
the same expiry cannot both advance the round.
"""

import functools
import json
import time
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from gamepanel import db
from gamepanel.errors import ConflictError, ValidationError
from gamepanel.models import (
    ACTION_KINDS,
    DEFAULT_CURRENT_TIMER,
    DEFAULT_NEXT_ROUND_DETAILS,
    DEFAULT_NEXT_ROUND_NAME,
    DEFAULT_NEXT_ROUND_TIMER,
    DEFAULT_NEXT_TIMER,
    DEFAULT_ROUND_DETAILS,
    DEFAULT_ROUND_NAME,
    DEFAULT_TOTAL_ROUNDS,
    GAME_STATE_ID,
    GAME_STATUSES,
    HISTORY_STATUSES,
    AdminAction,
    GameState,
    RoundHistory,
)
from .timers import (
    CountdownReading,
    TimerReading,
    countdown_total,
    derive_countdown,
    derive_timer,
    reading_for,
    split_countdown,
)

GAME_ACTIONS = ('start_game', 'pause_game', 'resume_game', 'reset_game', 'end_game')
COUNTDOWN_ACTIONS = ('start_countdown', 'pause_countdown', 'resume_countdown', 'reset_countdown')


@dataclass
class Observation:
    state: GameState
    round_timer: TimerReading
    round_running: bool
    countdown: CountdownReading
    changed: bool = False

    def countdown_to_dict(self) -> dict:
        cd = self.countdown
        return {
            'days': cd.days,
            'hours': cd.hours,
            'minutes': cd.minutes,
            'seconds': cd.seconds,
            'isActive': self.state.countdown_is_active,
            'isPaused': self.state.countdown_is_paused,
            'remaining': cd.remaining,
            'finished': cd.finished or self.state.countdown_finished,
        }

    def round_timer_to_dict(self) -> dict:
        payload = self.round_timer.to_dict()
        payload['isActive'] = self.round_running
        return payload


def _now(now: Optional[float]) -> float:
    return time.time() if now is None else now


def _apply_defaults(state: GameState) -> None:
    state.round_name = DEFAULT_ROUND_NAME
    state.round_details = DEFAULT_ROUND_DETAILS
    state.attachments = []
    state.current_timer = DEFAULT_CURRENT_TIMER
    state.next_timer = DEFAULT_NEXT_TIMER
    state.round_start_time = None
    state.paused_remaining = None
    state.cooldown_end_time = None
    _clear_countdown(state)
    _reset_next_round(state)
    state.current_round = 1
    state.total_rounds = DEFAULT_TOTAL_ROUNDS
    state.game_status = 'waiting'


def _clear_countdown(state: GameState) -> None:
    state.countdown_days = 0
    state.countdown_hours = 0
    state.countdown_minutes = 0
    state.countdown_seconds = 0
    state.countdown_is_active = False
    state.countdown_is_paused = False
    state.countdown_start_time = None
    state.countdown_original_duration = None
    state.countdown_finished_at = None


def _reset_next_round(state: GameState) -> None:
    state.next_round_name = DEFAULT_NEXT_ROUND_NAME
    state.next_round_details = DEFAULT_NEXT_ROUND_DETAILS
    state.next_round_attachments = []
    state.next_round_timer = DEFAULT_NEXT_ROUND_TIMER


def get_or_create_state() -> GameState:
    """Return the singleton game state, installing defaults on first use."""
    state = db.session.get(GameState, GAME_STATE_ID)
    if state is not None:
        return state
    state = GameState(id=GAME_STATE_ID)
    _apply_defaults(state)
    db.session.add(state)
    try:
        db.session.commit()
        current_app.logger.info('[state-init] default game state created')
    except IntegrityError:
        # Another request created it first
        db.session.rollback()
        state = db.session.get(GameState, GAME_STATE_ID)
    return state


def record_action(state: GameState, action: str, details: Optional[str] = None, now: Optional[float] = None) -> AdminAction:
    """Append an audit row carrying a snapshot of ``state``. Not committed."""
    if action not in ACTION_KINDS:
        raise ValueError(f'unknown admin action {action!r}')
    entry = AdminAction(
        action=action,
        details=details or f'Game action: {action}',
        timestamp=_now(now),
        game_state_json=json.dumps(state.to_dict()),
    )
    db.session.add(entry)
    return entry


def _touch(state: GameState, now: float) -> None:
    state.last_updated = now


def _commit() -> None:
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConflictError('STATE_CHANGED', 'Game state changed concurrently; re-read and try again')


def _archive_round(state: GameState, start_time: float, end_time: float, status: str = 'completed') -> RoundHistory:
    if status not in HISTORY_STATUSES:
        raise ValueError(f'unknown history status {status!r}')
    entry = RoundHistory(
        round_number=state.current_round,
        round_name=state.round_name,
        round_details=state.round_details,
        duration=state.current_timer,
        start_time=start_time,
        end_time=end_time,
        attachments_json=json.dumps(state.attachments),
        status=status,
        created_at=end_time,
    )
    db.session.add(entry)
    return entry


# ---- Derivation with lazy transitions ----

def _countdown_running_reading(state: GameState, now: float) -> CountdownReading:
    return derive_countdown(
        days=state.countdown_days,
        hours=state.countdown_hours,
        minutes=state.countdown_minutes,
        seconds=state.countdown_seconds,
        is_active=state.countdown_is_active,
        is_paused=state.countdown_is_paused,
        start_time=state.countdown_start_time,
        original_duration=state.countdown_original_duration,
        now=now,
    )


def _note_transition(state: GameState, action: str, detail: str, now: float, notes: Optional[list]) -> None:
    """Audit an automatic transition.

    A read records it as its own action. A write passes ``notes`` and folds
    the detail into its single audit record instead.
    """
    if notes is None:
        record_action(state, action, detail, now)
    else:
        notes.append(detail)


def _settle_countdown(state: GameState, now: float, notes: Optional[list] = None) -> tuple[CountdownReading, bool]:
    reading = _countdown_running_reading(state, now)
    if not (reading.finished and state.countdown_is_active):
        return reading, False

    state.countdown_is_active = False
    state.countdown_is_paused = False
    state.countdown_finished_at = now
    state.countdown_days = state.countdown_hours = state.countdown_minutes = state.countdown_seconds = 0
    promoted = state.game_status in ('waiting', 'countdown')
    if promoted:
        state.game_status = 'active'
        state.round_start_time = now
        state.paused_remaining = None
    _touch(state, now)
    detail = 'Countdown finished'
    if promoted:
        detail += f'; round {state.current_round} started: {state.round_name}'
    _note_transition(state, 'countdown_finished', detail, now, notes)
    current_app.logger.info(f"[countdown-finished] promoted={promoted} round={state.current_round}")
    return reading, True


def _settle_round(state: GameState, now: float, notes: Optional[list] = None) -> tuple[TimerReading, bool, bool]:
    """Returns (reading, running, changed)."""
    if state.game_status == 'active' and state.round_start_time is not None:
        reading = derive_timer(state.current_timer, state.round_start_time, now)
        if reading.remaining == 0 and state.current_timer > 0:
            prev_round = state.current_round
            state.current_timer = state.next_timer
            state.round_start_time = now
            state.current_round += 1
            _touch(state, now)
            _note_transition(
                state,
                'auto_advance',
                f'Round {prev_round} timer expired; round {state.current_round} started ({state.current_timer}s)',
                now,
                notes,
            )
            current_app.logger.info(f"[auto-advance] round {prev_round} -> {state.current_round}")
            return reading_for(state.current_timer), True, True
        return reading, True, False
    if state.game_status == 'paused' and state.paused_remaining is not None:
        return reading_for(state.paused_remaining), False, False
    return reading_for(state.current_timer), False, False


def _settle(state: GameState, now: float, notes: Optional[list] = None) -> Observation:
    countdown, countdown_changed = _settle_countdown(state, now, notes)
    round_timer, running, round_changed = _settle_round(state, now, notes)
    return Observation(
        state=state,
        round_timer=round_timer,
        round_running=running,
        countdown=countdown,
        changed=countdown_changed or round_changed,
    )


def observe(now: Optional[float] = None) -> Observation:
    """Derive timers for a read, applying any transition that is now due.

    Detect, advance and persist happen in one transaction. If another writer
    got there first the commit fails the version check; the state it wrote is
    re-read and derived again instead.
    """
    now = _now(now)
    for _ in range(2):
        state = get_or_create_state()
        obs = _settle(state, now)
        if not obs.changed:
            return obs
        try:
            db.session.commit()
            return obs
        except StaleDataError:
            db.session.rollback()
            current_app.logger.info('[observe] lost advancement race, re-reading state')
    raise ConflictError('STATE_CHANGED', 'Game state is changing too quickly to read; try again')


# ---- Validation helpers ----

def _as_int(value, field: str, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ValidationError(message=f'{field} must be an integer', details={'field': field})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message=f'{field} must be an integer', details={'field': field})
    if number < minimum:
        raise ValidationError(message=f'{field} must be >= {minimum}', details={'field': field})
    return number


def _as_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message=f'{field} is required', details={'field': field})
    return value.strip()


def _as_attachments(value, field: str = 'attachments') -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(message=f'{field} must be a list', details={'field': field})
    return value


# ---- Timer anchoring ----

def _reanchor_round_timer(state: GameState, now: float) -> None:
    """Restart the round clock after its duration changed."""
    if state.game_status == 'active':
        state.round_start_time = now
    elif state.game_status == 'paused':
        state.paused_remaining = state.current_timer


def _pause_round(state: GameState, now: float) -> None:
    state.paused_remaining = derive_timer(state.current_timer, state.round_start_time, now).remaining
    if state.round_start_time is None:
        state.round_start_time = now
    state.game_status = 'paused'


def _resume_round(state: GameState, now: float) -> None:
    remaining = state.paused_remaining if state.paused_remaining is not None else state.current_timer
    # Paused time is not counted against the round
    state.round_start_time = now - max(0, state.current_timer - remaining)
    state.paused_remaining = None
    state.game_status = 'active'


def _start_countdown(state: GameState, now: float) -> None:
    total = countdown_total(state.countdown_days, state.countdown_hours, state.countdown_minutes, state.countdown_seconds)
    state.countdown_is_active = True
    state.countdown_is_paused = False
    state.countdown_start_time = now
    state.countdown_original_duration = total
    state.countdown_finished_at = None
    if state.game_status in ('waiting', 'countdown_finished', 'ended'):
        state.game_status = 'countdown'


def _pause_countdown(state: GameState, now: float) -> None:
    reading = _countdown_running_reading(state, now)
    state.countdown_days, state.countdown_hours, state.countdown_minutes, state.countdown_seconds = split_countdown(reading.remaining)
    state.countdown_is_paused = True


def _resume_countdown(state: GameState, now: float) -> None:
    frozen = countdown_total(state.countdown_days, state.countdown_hours, state.countdown_minutes, state.countdown_seconds)
    original = state.countdown_original_duration if state.countdown_original_duration is not None else frozen
    # Shift the anchor so original_duration keeps describing the whole countdown
    state.countdown_start_time = now - max(0, original - frozen)
    state.countdown_original_duration = original
    state.countdown_is_paused = False


def _stop_countdown(state: GameState) -> None:
    state.countdown_is_active = False
    state.countdown_is_paused = False
    state.countdown_start_time = None
    state.countdown_original_duration = None
    if state.game_status == 'countdown':
        state.game_status = 'waiting'


def _countdown_running(state: GameState) -> bool:
    return state.countdown_is_active and not state.countdown_is_paused and state.countdown_start_time is not None


# ---- Writes ----

def _write(fn):
    """Roll back the session when a write is rejected part way through."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except Exception:
            db.session.rollback()
            raise
    return wrapper


def _finish_write(state: GameState, action: str, details: str, now: float, notes: Optional[list] = None) -> GameState:
    _touch(state, now)
    if notes:
        details = f"{details} (after: {'; '.join(notes)})"
    record_action(state, action, details, now)
    _commit()
    current_app.logger.info(f"[action] {action} round={state.current_round} status={state.game_status}")
    return state


@_write
def set_countdown(payload: dict, now: Optional[float] = None) -> GameState:
    now = _now(now)
    state = get_or_create_state()
    notes = []
    _settle(state, now, notes)

    days = _as_int(payload.get('days', 0), 'days')
    hours = _as_int(payload.get('hours', 0), 'hours')
    minutes = _as_int(payload.get('minutes', 0), 'minutes')
    seconds = _as_int(payload.get('seconds', 0), 'seconds')
    is_active = bool(payload.get('isActive', False))
    is_paused = bool(payload.get('isPaused', False))

    was_running = _countdown_running(state)
    was_paused = state.countdown_is_active and state.countdown_is_paused

    if not is_active:
        _stop_countdown(state)
        state.countdown_days, state.countdown_hours, state.countdown_minutes, state.countdown_seconds = days, hours, minutes, seconds
    elif was_running and is_paused:
        _pause_countdown(state, now)
    elif was_paused and not is_paused:
        _resume_countdown(state, now)
    elif not state.countdown_is_active or state.countdown_start_time is None:
        state.countdown_days, state.countdown_hours, state.countdown_minutes, state.countdown_seconds = days, hours, minutes, seconds
        _start_countdown(state, now)
        if is_paused:
            state.countdown_is_paused = True

    return _finish_write(state, 'set_countdown', f'Countdown set: {days}:{hours}:{minutes}:{seconds}', now, notes)


@_write
def countdown_action(action: str, details: Optional[str] = None, now: Optional[float] = None) -> GameState:
    if action not in COUNTDOWN_ACTIONS:
        raise ValidationError('UNKNOWN_ACTION', f'Unknown countdown action: {action}', details={'action': action})
    now = _now(now)
    state = get_or_create_state()
    notes = []
    _settle(state, now, notes)

    if action == 'start_countdown':
        if state.countdown_is_active and state.countdown_is_paused:
            _resume_countdown(state, now)
        elif not _countdown_running(state):
            total = countdown_total(state.countdown_days, state.countdown_hours, state.countdown_minutes, state.countdown_seconds)
            if total <= 0:
                raise ValidationError(message='Countdown duration must be greater than zero')
            _start_countdown(state, now)
    elif action == 'pause_countdown':
        if not _countdown_running(state):
            raise ValidationError('INVALID_TRANSITION', 'Countdown is not running')
        _pause_countdown(state, now)
    elif action == 'resume_countdown':
        if not (state.countdown_is_active and state.countdown_is_paused):
            raise ValidationError('INVALID_TRANSITION', 'Countdown is not paused')
        _resume_countdown(state, now)
    elif action == 'reset_countdown':
        _stop_countdown(state)
        _clear_countdown(state)
        if state.game_status == 'countdown_finished':
            state.game_status = 'waiting'

    return _finish_write(state, action, details or f'Countdown action: {action}', now, notes)


@_write
def game_action(action: str, details: Optional[str] = None, now: Optional[float] = None) -> GameState:
    if action not in GAME_ACTIONS:
        raise ValidationError('UNKNOWN_ACTION', f'Unknown game action: {action}', details={'action': action})
    now = _now(now)
    state = get_or_create_state()
    notes = []
    _settle(state, now, notes)

    if action == 'start_game':
        state.game_status = 'active'
        state.round_start_time = now
        state.paused_remaining = None
    elif action == 'pause_game':
        if state.game_status != 'active':
            raise ValidationError('INVALID_TRANSITION', f'Cannot pause a game that is {state.game_status}')
        _pause_round(state, now)
    elif action == 'resume_game':
        if state.game_status != 'paused':
            raise ValidationError('INVALID_TRANSITION', f'Cannot resume a game that is {state.game_status}')
        _resume_round(state, now)
    elif action == 'reset_game':
        if state.current_round_started:
            _archive_round(state, state.round_start_time, now, status='cancelled')
        state.game_status = 'waiting'
        state.current_round = 1
        state.round_start_time = None
        state.paused_remaining = None
        state.cooldown_end_time = None
    elif action == 'end_game':
        if state.current_round_started:
            _archive_round(state, state.round_start_time, now, status='incomplete')
        _apply_defaults(state)

    return _finish_write(state, action, details or f'Game action: {action}', now, notes)


@_write
def start_next_round(early: bool = False, now: Optional[float] = None) -> GameState:
    """Archive the current round and promote the queued one into its place."""
    now = _now(now)
    state = get_or_create_state()
    notes = []
    # The promotion replaces the expiry advance, so only the countdown settles
    _settle_countdown(state, now, notes)

    if early:
        started = state.round_start_time if state.round_start_time is not None else now
    else:
        started = now - state.current_timer
    _archive_round(state, started, now, status='completed')

    state.round_name = state.next_round_name
    state.round_details = state.next_round_details
    state.attachments = state.next_round_attachments
    state.current_timer = state.next_round_timer or state.next_timer
    state.current_round += 1
    state.round_start_time = now
    state.paused_remaining = None
    state.game_status = 'active'
    _reset_next_round(state)

    action = 'start_next_round_early' if early else 'start_next_round'
    suffix = ' early' if early else ''
    return _finish_write(state, action, f'Started round {state.current_round}{suffix}: {state.round_name}', now, notes)


@_write
def update_round_info(payload: dict, now: Optional[float] = None) -> GameState:
    now = _now(now)
    state = get_or_create_state()
    notes = []
    _settle(state, now, notes)
    state.round_name = _as_text(payload.get('roundName'), 'roundName')
    state.round_details = _as_text(payload.get('roundDetails'), 'roundDetails')
    state.attachments = _as_attachments(payload.get('attachments'))
    return _finish_write(state, 'update_round_info', f'Round updated: {state.round_name}', now, notes)


@_write
def update_current_round(payload: dict, now: Optional[float] = None) -> GameState:
    """Partial update of the running round; a changed timer restarts its clock."""
    now = _now(now)
    state = get_or_create_state()
    notes = []
    _settle(state, now, notes)
    if payload.get('roundName'):
        state.round_name = _as_text(payload['roundName'], 'roundName')
    if payload.get('roundDetails'):
        state.round_details = _as_text(payload['roundDetails'], 'roundDetails')
    if payload.get('attachments') is not None:
        state.attachments = _as_attachments(payload['attachments'])
    if payload.get('currentTimer') is not None:
        timer = _as_int(payload['currentTimer'], 'currentTimer', minimum=1)
        if timer != state.current_timer:
            state.current_timer = timer
            _reanchor_round_timer(state, now)
    return _finish_write(state, 'update_current_round', f'Current round updated: {state.round_name}', now, notes)


@_write
def update_next_round(payload: dict, now: Optional[float] = None) -> GameState:
    now = _now(now)
    state = get_or_create_state()
    notes = []
    _settle(state, now, notes)
    state.next_round_name = _as_text(payload.get('name'), 'name')
    state.next_round_details = _as_text(payload.get('details'), 'details')
    state.next_round_attachments = _as_attachments(payload.get('attachments'))
    if payload.get('timer') is not None:
        state.next_round_timer = _as_int(payload['timer'], 'timer', minimum=1)
    return _finish_write(state, 'update_next_round', f'Next round updated: {state.next_round_name}', now, notes)


@_write
def set_timers(payload: dict, now: Optional[float] = None) -> GameState:
    now = _now(now)
    state = get_or_create_state()
    notes = []
    _settle(state, now, notes)
    state.current_timer = _as_int(payload.get('currentTimer'), 'currentTimer')
    state.next_timer = _as_int(payload.get('nextTimer'), 'nextTimer')
    _reanchor_round_timer(state, now)
    return _finish_write(
        state, 'set_timers', f'Timers set: {state.current_timer}s current, {state.next_timer}s next', now, notes
    )


@_write
def update_settings(payload: dict, now: Optional[float] = None) -> GameState:
    """Replace any subset of the stored settings in one audited write."""
    now = _now(now)
    state = get_or_create_state()
    notes = []
    _settle(state, now, notes)

    if 'roundName' in payload:
        state.round_name = _as_text(payload['roundName'], 'roundName')
    if 'roundDetails' in payload:
        state.round_details = _as_text(payload['roundDetails'], 'roundDetails')
    if 'attachments' in payload:
        state.attachments = _as_attachments(payload['attachments'])
    if 'currentTimer' in payload:
        state.current_timer = _as_int(payload['currentTimer'], 'currentTimer')
    if 'nextTimer' in payload:
        state.next_timer = _as_int(payload['nextTimer'], 'nextTimer')
    if 'totalRounds' in payload:
        state.total_rounds = _as_int(payload['totalRounds'], 'totalRounds', minimum=1)
    if 'currentRound' in payload:
        state.current_round = _as_int(payload['currentRound'], 'currentRound', minimum=1)
    if 'gameStatus' in payload:
        status = payload['gameStatus']
        if status not in GAME_STATUSES:
            raise ValidationError(message=f'gameStatus must be one of {", ".join(GAME_STATUSES)}', details={'field': 'gameStatus'})
        previous = state.game_status
        if status == 'active' and previous == 'paused':
            _resume_round(state, now)
        elif status == 'paused' and previous != 'paused':
            _pause_round(state, now)
        elif status in ('active', 'paused'):
            state.game_status = status
            if state.round_start_time is None:
                state.round_start_time = now
        else:
            state.game_status = status
            state.round_start_time = None
            state.paused_remaining = None

    next_round = payload.get('nextRound')
    if next_round is not None:
        if not isinstance(next_round, dict):
            raise ValidationError(message='nextRound must be an object', details={'field': 'nextRound'})
        if 'name' in next_round:
            state.next_round_name = _as_text(next_round['name'], 'nextRound.name')
        if 'details' in next_round:
            state.next_round_details = _as_text(next_round['details'], 'nextRound.details')
        if 'attachments' in next_round:
            state.next_round_attachments = _as_attachments(next_round['attachments'], 'nextRound.attachments')
        if 'timer' in next_round:
            state.next_round_timer = _as_int(next_round['timer'], 'nextRound.timer', minimum=1)

    countdown = payload.get('preGameCountdown')
    if countdown is not None:
        if not isinstance(countdown, dict):
            raise ValidationError(message='preGameCountdown must be an object', details={'field': 'preGameCountdown'})
        for key in ('days', 'hours', 'minutes', 'seconds'):
            if key in countdown:
                setattr(state, f'countdown_{key}', _as_int(countdown[key], f'preGameCountdown.{key}'))
        if countdown.get('isActive') and not state.countdown_is_active:
            _start_countdown(state, now)
        elif 'isActive' in countdown and not countdown['isActive'] and state.countdown_is_active:
            _stop_countdown(state)

    return _finish_write(state, 'update_settings', 'Game settings updated', now, notes)


def round_history(limit: int):
    return RoundHistory.query.order_by(RoundHistory.created_at.desc(), RoundHistory.id.desc()).limit(limit).all()


def admin_actions(limit: int):
    return AdminAction.query.order_by(AdminAction.timestamp.desc(), AdminAction.id.desc()).limit(limit).all()
