from backend.auth_service.utils import create_token


def auth_header(user_id, role="user"):
    return {"Authorization": f"Bearer {create_token(user_id, role)}"}
