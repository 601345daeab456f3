import time

from sqlalchemy.exc import OperationalError

from gamepanel import db
from gamepanel.services import engine


def _arrange(**fields):
    state = engine.get_or_create_state()
    for key, value in fields.items():
        setattr(state, key, value)
    db.session.commit()


def test_index_and_health(client):
    assert client.get('/').status_code == 200
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json()['gameStatus'] == 'waiting'


def test_game_settings_created_on_first_read(client):
    res = client.get('/api/game-settings')
    assert res.status_code == 200
    data = res.get_json()
    assert data['roundName'] == 'Mission Alpha'
    assert data['currentTimer'] == 300
    assert data['gameStatus'] == 'waiting'
    assert data['isActive'] is False
    assert data['countdownFinished'] is False
    assert data['currentRoundStarted'] is False
    assert data['nextRound']['name'] == 'Mission Beta'
    assert data['preGameCountdown']['isActive'] is False


def test_timer_status_advances_expired_round(client):
    _arrange(game_status='active', current_timer=300, next_timer=180, round_start_time=time.time() - 301)
    data = client.get('/api/timer-status').get_json()
    assert data['remainingTime'] == 180
    assert data['display'] == '03:00'
    assert data['currentRound'] == 2
    assert data['isRoundActive'] is True
    assert data['gameStatus'] == 'active'

    actions = client.get('/api/admin-actions').get_json()
    assert actions[0]['action'] == 'auto_advance'
    assert actions[0]['gameState']['currentRound'] == 2


def test_timer_status_when_waiting_shows_full_timer(client):
    data = client.get('/api/timer-status').get_json()
    assert data['remainingTime'] == 300
    assert data['display'] == '05:00'
    assert data['isRoundActive'] is False


def test_countdown_status_derives_remaining(client):
    res = client.put('/api/countdown', json={'days': 0, 'hours': 1, 'minutes': 0, 'seconds': 0, 'isActive': True, 'isPaused': False})
    assert res.status_code == 200
    assert res.get_json()['gameStatus'] == 'countdown'
    assert res.get_json()['preGameCountdown']['originalDuration'] == 3600
    _arrange(countdown_start_time=time.time() - 1800)

    data = client.get('/api/countdown-status').get_json()
    assert (data['days'], data['hours'], data['minutes'], data['seconds']) == (0, 0, 30, 0)
    assert data['remaining'] == 1800
    assert data['finished'] is False
    assert data['isActive'] is True


def test_game_state_promotes_finished_countdown(client):
    client.put('/api/countdown', json={'minutes': 1, 'isActive': True})
    _arrange(countdown_start_time=time.time() - 61)

    data = client.get('/api/game-state').get_json()
    assert data['gameStatus'] == 'active'
    assert data['countdownFinished'] is True
    assert data['countdownStatus']['finished'] is True
    assert data['roundTimer']['isActive'] is True
    assert data['roundTimer']['remainingTime'] == 300
    assert data['roundStartTime'] is not None


def test_game_actions(client):
    res = client.post('/api/game-action', json={'action': 'start_game'})
    assert res.status_code == 200
    assert res.get_json()['gameStatus'] == 'active'
    assert res.get_json()['isActive'] is True

    res = client.post('/api/game-action', json={'action': 'pause_game', 'details': 'Emergency meeting'})
    assert res.get_json()['gameStatus'] == 'paused'
    assert client.get('/api/admin-actions').get_json()[0]['details'] == 'Emergency meeting'

    res = client.post('/api/game-action', json={'action': 'resume_game'})
    assert res.get_json()['gameStatus'] == 'active'

    res = client.post('/api/game-action', json={'action': 'reset_game'})
    data = res.get_json()
    assert data['gameStatus'] == 'waiting'
    assert data['currentRound'] == 1
    assert data['roundStartTime'] is None


def test_end_game_restores_defaults(client):
    client.put('/api/round-info', json={'roundName': 'Sabotage', 'roundDetails': 'Lights out'})
    client.post('/api/start-next-round')
    client.put('/api/timers', json={'currentTimer': 60, 'nextTimer': 30})

    data = client.post('/api/game-action', json={'action': 'end_game'}).get_json()
    assert data['roundName'] == 'Mission Alpha'
    assert data['currentRound'] == 1
    assert data['gameStatus'] == 'waiting'
    assert data['currentTimer'] == 300


def test_unknown_game_action_is_rejected(client):
    res = client.post('/api/game-action', json={'action': 'sabotage'})
    assert res.status_code == 422
    assert res.get_json()['error']['code'] == 'UNKNOWN_ACTION'


def test_pause_while_waiting_is_rejected(client):
    res = client.post('/api/game-action', json={'action': 'pause_game'})
    assert res.status_code == 422
    assert res.get_json()['error']['code'] == 'INVALID_TRANSITION'
    assert client.get('/api/admin-actions').get_json() == []


def test_round_promotion_and_history(client):
    client.put('/api/next-round', json={
        'name': 'Reactor Meltdown',
        'details': 'Stabilise the reactor',
        'attachments': [{'name': 'Docs', 'url': 'https://example.com', 'isLink': True}],
        'timer': 240,
    })
    data = client.post('/api/start-next-round-early').get_json()
    assert data['currentRound'] == 2
    assert data['roundName'] == 'Reactor Meltdown'
    assert data['currentTimer'] == 240
    assert data['attachments'][0]['isLink'] is True
    assert data['nextRound']['name'] == 'Mission Beta'

    history = client.get('/api/round-history').get_json()
    assert len(history) == 1
    assert history[0]['roundNumber'] == 1
    assert history[0]['roundName'] == 'Mission Alpha'
    assert history[0]['status'] == 'completed'

    data = client.post('/api/start-next-round').get_json()
    assert data['currentRound'] == 3
    assert len(client.get('/api/round-history').get_json()) == 2


def test_update_current_round_and_settings(client):
    data = client.put('/api/update-current-round', json={'roundName': 'Electrical', 'currentTimer': 120}).get_json()
    assert data['roundName'] == 'Electrical'
    assert data['currentTimer'] == 120
    assert data['roundDetails'].startswith('Complete all tasks')

    data = client.put('/api/game-settings', json={'totalRounds': 6, 'nextRound': {'timer': 90}}).get_json()
    assert data['totalRounds'] == 6
    assert data['nextRound']['timer'] == 90
    assert data['roundName'] == 'Electrical'

    kinds = [a['action'] for a in client.get('/api/admin-actions').get_json()]
    assert kinds == ['update_settings', 'update_current_round']


def test_settings_validation(client):
    res = client.put('/api/game-settings', json={'gameStatus': 'sleeping'})
    assert res.status_code == 422
    res = client.put('/api/round-info', json={'roundDetails': 'no name'})
    assert res.status_code == 422
    assert res.get_json()['error']['details']['field'] == 'roundName'
    res = client.put('/api/timers', json={'currentTimer': 'soon', 'nextTimer': 10})
    assert res.status_code == 422


def test_countdown_actions(client):
    client.put('/api/countdown', json={'minutes': 5, 'isActive': False})
    res = client.post('/api/countdown-action', json={'action': 'start_countdown'})
    assert res.get_json()['preGameCountdown']['isActive'] is True
    assert res.get_json()['gameStatus'] == 'countdown'

    res = client.post('/api/countdown-action', json={'action': 'pause_countdown'})
    assert res.get_json()['preGameCountdown']['isPaused'] is True

    res = client.post('/api/countdown-action', json={'action': 'reset_countdown'})
    data = res.get_json()
    assert data['preGameCountdown']['isActive'] is False
    assert data['preGameCountdown']['minutes'] == 0
    assert data['gameStatus'] == 'waiting'


def test_store_failure_is_reported(client, monkeypatch):
    def boom(*args, **kwargs):
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    monkeypatch.setattr(engine, 'observe', boom)
    res = client.get('/api/game-state')
    assert res.status_code == 503
    assert res.get_json()['error']['code'] == 'PERSISTENCE_ERROR'


def test_unknown_route_is_json_404(client):
    res = client.get('/api/nothing-here')
    assert res.status_code == 404
    assert res.get_json()['error']['code'] == 'NOT_FOUND'
