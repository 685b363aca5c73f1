# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

import pytest

from fakes import SleepRecorder


@pytest.fixture
def sleeper():
    return SleepRecorder()
