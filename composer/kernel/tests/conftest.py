"""
Composer kernel test configuration.

Shared block builders. Tests build small documents out of text blocks with
fixed ids so assertions can name them.
"""

import pytest

from composer.kernel.blocks import create_default


def _text(block_id: str, content: str = "") -> dict:
    block = create_default("text", block_id=block_id)
    block["content"] = content
    return block


@pytest.fixture
def make_text():
    return _text


@pytest.fixture
def three_blocks():
    """Three text blocks a, b, c."""
    return [_text("a", "Alpha"), _text("b", "Bravo"), _text("c", "Charlie")]
