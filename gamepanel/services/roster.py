"""Participant roster: registration, lookup and elimination.

Elimination operations are set-style and idempotent; each returns how many
rows it touched. Unknown roll numbers in a batch are reported per item.
"""

import time
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from gamepanel import db
from gamepanel.errors import ConflictError, NotFoundError, ValidationError
from gamepanel.models import PARTICIPANT_STATUSES, Participant

# request key -> column
FIELDS = {
    'name': 'name',
    'rollNumber': 'roll_number',
    'email': 'email',
    'phone': 'phone',
    'college': 'college',
    'branch': 'branch',
    'year': 'year',
    'degree': 'degree',
    'team': 'team',
    'avatar': 'avatar',
    'status': 'status',
}
REQUIRED = ('name', 'rollNumber', 'email', 'college', 'branch', 'year', 'degree')
# columns with a model default; a blank value keeps the default
DEFAULTED = ('avatar', 'status')


def _clean(payload: dict, partial: bool = False) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError(message='Participant payload must be an object')
    values = {}
    for key, column in FIELDS.items():
        if key not in payload or payload[key] is None:
            continue
        raw = payload[key]
        value = str(raw).strip()
        if key == 'email':
            value = value.lower()
        if not value and key in DEFAULTED:
            continue
        values[column] = value or None

    missing = [key for key in REQUIRED if not values.get(FIELDS[key]) and (not partial or key in payload)]
    if missing:
        raise ValidationError(
            'MISSING_FIELDS',
            f'Missing required fields: {", ".join(missing)}',
            details={'fields': missing},
        )
    status = values.get('status')
    if status is not None and status not in PARTICIPANT_STATUSES:
        raise ValidationError(message='status must be Alive or Eliminated', details={'field': 'status'})
    if values.get('email') and '@' not in values['email']:
        raise ValidationError(message='email is not valid', details={'field': 'email'})
    return values


def _check_unique(roll_number: Optional[str], email: Optional[str], exclude_id: Optional[int] = None) -> None:
    clashes = []
    if roll_number:
        q = Participant.query.filter_by(roll_number=roll_number)
        if exclude_id is not None:
            q = q.filter(Participant.id != exclude_id)
        if q.first():
            clashes.append('rollNumber')
    if email:
        q = Participant.query.filter_by(email=email)
        if exclude_id is not None:
            q = q.filter(Participant.id != exclude_id)
        if q.first():
            clashes.append('email')
    if clashes:
        raise ConflictError('DUPLICATE_PARTICIPANT', f'Participant with this {" and ".join(clashes)} already exists', details={'fields': clashes})


def _commit_unique() -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('DUPLICATE_PARTICIPANT', 'Participant with this rollNumber or email already exists')


def get_participant(roll_number: str) -> Participant:
    participant = Participant.query.filter_by(roll_number=roll_number).first()
    if not participant:
        raise NotFoundError(message=f'Participant {roll_number} not found', details={'rollNumber': roll_number})
    return participant


def list_participants(status: Optional[str] = None, team: Optional[str] = None,
                      college: Optional[str] = None, search: Optional[str] = None):
    q = Participant.query
    if status:
        q = q.filter_by(status=status)
    if team:
        q = q.filter_by(team=team)
    if college:
        q = q.filter_by(college=college)
    if search:
        like = f'%{search.strip()}%'
        q = q.filter(or_(Participant.name.ilike(like), Participant.roll_number.ilike(like)))
    return q.order_by(Participant.roll_number.asc()).all()


def create_participant(payload: dict, now: Optional[float] = None) -> Participant:
    values = _clean(payload)
    _check_unique(values['roll_number'], values['email'])
    now = time.time() if now is None else now
    participant = Participant(registered_at=now, last_updated=now, **values)
    if participant.status == 'Eliminated':
        participant.eliminated_at = now
    db.session.add(participant)
    _commit_unique()
    current_app.logger.info(f"[participant-add] roll={participant.roll_number}")
    return participant


def update_participant(roll_number: str, payload: dict, now: Optional[float] = None) -> Participant:
    participant = get_participant(roll_number)
    values = _clean(payload, partial=True)
    _check_unique(values.get('roll_number'), values.get('email'), exclude_id=participant.id)
    now = time.time() if now is None else now
    previous_status = participant.status
    for column, value in values.items():
        setattr(participant, column, value)
    if participant.status != previous_status:
        participant.eliminated_at = now if participant.status == 'Eliminated' else None
    participant.last_updated = now
    _commit_unique()
    return participant


def delete_participant(roll_number: str) -> None:
    participant = get_participant(roll_number)
    db.session.delete(participant)
    db.session.commit()
    current_app.logger.info(f"[participant-delete] roll={roll_number}")


def participant_stats() -> dict:
    rows = db.session.query(Participant.status, func.count(Participant.id)).group_by(Participant.status).all()
    result = {'total': 0, 'alive': 0, 'eliminated': 0}
    for status, count in rows:
        result['total'] += count
        if status == 'Alive':
            result['alive'] = count
        elif status == 'Eliminated':
            result['eliminated'] = count
    return result


def eliminate_by_roll_numbers(roll_numbers: Iterable[str], now: Optional[float] = None) -> dict:
    """Eliminate each listed participant; unknown roll numbers are reported, not fatal."""
    if isinstance(roll_numbers, str) or not isinstance(roll_numbers, (list, tuple)):
        raise ValidationError(message='rollNumbers must be a list of strings', details={'field': 'rollNumbers'})
    now = time.time() if now is None else now
    results = []
    seen = set()
    modified = 0
    for raw in roll_numbers:
        roll = str(raw).strip() if raw is not None else ''
        if not roll or roll in seen:
            continue
        seen.add(roll)
        participant = Participant.query.filter_by(roll_number=roll).first()
        if not participant:
            results.append({'rollNumber': roll, 'status': 'not_found'})
            continue
        participant.status = 'Eliminated'
        participant.eliminated_at = now
        participant.last_updated = now
        modified += 1
        results.append({'rollNumber': roll, 'status': 'eliminated'})
    db.session.commit()
    current_app.logger.info(f"[eliminate] {modified} participants, {len(results) - modified} not found")
    return {'modified': modified, 'results': results}


def eliminate_team(team: str, now: Optional[float] = None) -> dict:
    if not isinstance(team, str) or not team.strip():
        raise ValidationError(message='team is required', details={'field': 'team'})
    now = time.time() if now is None else now
    modified = (
        Participant.query
        .filter_by(team=team.strip(), status='Alive')
        .update({'status': 'Eliminated', 'eliminated_at': now, 'last_updated': now}, synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info(f"[eliminate-team] team={team.strip()} modified={modified}")
    return {'team': team.strip(), 'modified': modified}


def reset_participants(now: Optional[float] = None) -> dict:
    now = time.time() if now is None else now
    modified = (
        Participant.query
        .filter_by(status='Eliminated')
        .update({'status': 'Alive', 'eliminated_at': None, 'last_updated': now}, synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info(f"[reset-participants] modified={modified}")
    return {'modified': modified}


def seed_participants(rows) -> tuple[int, int]:
    """Insert participants from plain dicts, skipping roll numbers already present."""
    created = skipped = 0
    now = time.time()
    for row in rows or []:
        values = _clean(row)
        if Participant.query.filter(or_(
            Participant.roll_number == values['roll_number'],
            Participant.email == values['email'],
        )).first():
            skipped += 1
            continue
        db.session.add(Participant(registered_at=now, last_updated=now, **values))
        db.session.flush()
        created += 1
    db.session.commit()
    return created, skipped
