from flask import Blueprint, jsonify
from gamepanel.services.engine import get_or_create_state

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the game control panel!'})

@main.route('/health')
def health():
    state = get_or_create_state()
    return jsonify({'status': 'ok', 'gameStatus': state.game_status, 'currentRound': state.current_round})
