from starlette.requests import HTTPConnection

from app.core.container import AppContainer


def get_container(connection: HTTPConnection) -> AppContainer:
    return connection.app.state.container
