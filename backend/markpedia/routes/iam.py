from flask import Blueprint, request, abort, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from sqlalchemy import select
from markpedia import get_db
from markpedia.constants.roles import ALL_ROLES, ROLE_ADMIN
from markpedia.decorators.auth import require_roles
from markpedia.models.authz import User
from markpedia.utils.listing import apply_pagination, build_list_payload

iam_bp = Blueprint('iam', __name__)


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email==email)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        abort(401, description='invalid credentials')
    claims = {
        'role': user.role,
        'name': user.name,
        'department': user.department,
    }
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=claims)
    return {'access_token': token}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    # Identity stored as string, cast back to int for DB lookup
    user_id = int(get_jwt_identity())
    session = get_db()
    user = session.execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    return _user_json(user)


# --- User Management ---

@iam_bp.get('/users')
@require_roles(ROLE_ADMIN)
def list_users():
    session = get_db()
    q = session.query(User)
    role = request.args.get('role')
    if role:
        if role not in ALL_ROLES:
            abort(400, description='role invalid')
        q = q.filter(User.role==role)
    paged_q, total, limit, offset = apply_pagination(q.order_by(User.id.asc()))
    return build_list_payload([_user_json(u) for u in paged_q.all()], total, limit, offset)


@iam_bp.post('/users')
@require_roles(ROLE_ADMIN)
def create_user():
    data = request.json or {}
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    role = data.get('role') or 'Employee'
    if not name or not email or not password:
        abort(400, description='name, email & password required')
    if role not in ALL_ROLES:
        abort(400, description='role invalid')
    session = get_db()
    if session.execute(select(User).where(User.email==email)).scalar_one_or_none():
        abort(409, description='email already registered')
    user = User(name=name, email=email, password_hash='', role=role,
                department=data.get('department'), designation=data.get('designation'))
    user.set_password(password)
    session.add(user)
    session.commit()
    current_app.logger.info('User %s created with role %s', user.id, role)
    return _user_json(user), 201


@iam_bp.put('/users/<int:user_id>/role')
@require_roles(ROLE_ADMIN)
def set_user_role(user_id: int):
    data = request.json or {}
    role = data.get('role')
    if role not in ALL_ROLES:
        abort(400, description='role invalid')
    session = get_db()
    user = session.get(User, user_id)
    if not user:
        abort(404)
    user.role = role
    session.commit()
    # Existing tokens keep the old role claim until they expire
    current_app.logger.info('User %s role set to %s', user.id, role)
    return _user_json(user)


def _user_json(user: User):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'department': user.department,
        'designation': user.designation,
        'is_active': user.is_active,
    }
