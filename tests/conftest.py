import pytest

from factories import make_history


@pytest.fixture
def history_30():
    return make_history(30)


@pytest.fixture
def history_400():
    return make_history(400)
