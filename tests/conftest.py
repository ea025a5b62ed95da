import matplotlib

matplotlib.use("Agg")

import pytest  # noqa: E402

from switching import Switching  # noqa: E402


@pytest.fixture
def switching3():
    return Switching(3)


@pytest.fixture
def switching4():
    return Switching(4)
