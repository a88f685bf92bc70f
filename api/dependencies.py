from fastapi import Request

from core.round_lifecycle import RoundLifecycle


def get_lifecycle(request: Request) -> RoundLifecycle:
    """FastAPI dependency：取得 app 上唯一的 RoundLifecycle"""
    return request.app.state.lifecycle
