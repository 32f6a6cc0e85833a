"""User profile endpoints (display name and timezone)."""
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from flask import Blueprint, request, jsonify

from proactive_scheduler.models.database import db_session, User
from proactive_scheduler.utils.logger import get_logger

bp = Blueprint('users', __name__)
logger = get_logger(__name__)


def _valid_timezone(value) -> bool:
    if value is None:
        return True
    if not isinstance(value, str):
        return False
    try:
        ZoneInfo(value)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def _user_to_dict(user: User) -> dict:
    return {
        'id': user.id,
        'display_name': user.display_name,
        'email': user.email,
        'timezone': user.timezone,
        'created_at': user.created_at.isoformat(),
        'updated_at': user.updated_at.isoformat()
    }


@bp.route('', methods=['POST'])
@bp.route('/', methods=['POST'])
def create_user():
    data = request.get_json() or {}

    if not data.get('display_name'):
        return jsonify({'error': 'display_name is required'}), 400
    if not _valid_timezone(data.get('timezone')):
        return jsonify({'error': f"Unknown timezone: {data.get('timezone')}"}), 400

    session = db_session()
    try:
        user = User(
            display_name=data['display_name'],
            email=data.get('email'),
            timezone=data.get('timezone')
        )
        if data.get('id'):
            user.id = str(data['id'])
        session.add(user)
        session.commit()
        return jsonify(_user_to_dict(user)), 201
    except Exception as e:
        session.rollback()
        logger.error(f"Error creating user: {e}")
        return jsonify({'error': 'Could not create user'}), 400
    finally:
        session.close()


@bp.route('/<user_id>', methods=['GET'])
def get_user(user_id):
    session = db_session()
    try:
        user = session.query(User).filter(User.id == user_id).first()
        if not user:
            return jsonify({'error': 'User not found'}), 404
        return jsonify(_user_to_dict(user))
    finally:
        session.close()


@bp.route('/<user_id>', methods=['PUT'])
def update_user(user_id):
    data = request.get_json()

    if not data:
        return jsonify({'error': 'No data provided'}), 400
    if 'timezone' in data and not _valid_timezone(data['timezone']):
        return jsonify({'error': f"Unknown timezone: {data['timezone']}"}), 400

    session = db_session()
    try:
        user = session.query(User).filter(User.id == user_id).first()
        if not user:
            return jsonify({'error': 'User not found'}), 404

        if 'display_name' in data:
            user.display_name = data['display_name']
        if 'timezone' in data:
            user.timezone = data['timezone']
        session.commit()

        return jsonify(_user_to_dict(user))
    finally:
        session.close()
