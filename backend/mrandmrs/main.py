from flask import Blueprint, jsonify
from flask_login import login_required, current_user

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Mr & Mrs game server!'})

@main.route('/me')
@login_required
def whoami():
    return jsonify({'success': True, 'user': current_user.to_dict()})
