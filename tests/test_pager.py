import pytest

from mediasource.core.context import SourceContext
from mediasource.core.pager import Batch, Pager


class Source:
    def __init__(self, total, page_size):
        self.total = total
        self.page_size = page_size
        self.offsets = []

    async def fetch(self, offset):
        self.offsets.append(offset)
        return list(range(offset, min(offset + self.page_size, self.total)))


@pytest.mark.asyncio
async def test_next_page_advances_one_page_and_requeries():
    src = Source(total=75, page_size=30)
    pager = Pager(src.fetch, 30)

    first = await pager.get_results()
    assert first[0] == 0 and len(first) == 30
    assert pager.has_more()

    second = await pager.next_page()
    assert second[0] == 30
    assert pager.offset == 30
    assert pager.has_more()

    third = await pager.next_page()
    assert len(third) == 15
    assert not pager.has_more()
    assert src.offsets == [0, 30, 60]


@pytest.mark.asyncio
async def test_get_results_reissues_the_query():
    src = Source(total=10, page_size=30)
    pager = Pager(src.fetch, 30)

    await pager.get_results()
    await pager.get_results()

    assert src.offsets == [0, 0]


@pytest.mark.asyncio
async def test_non_paginating_pager():
    src = Source(total=100, page_size=30)
    pager = Pager(src.fetch, 30, paginates=False)

    assert not pager.has_more()
    assert len(await pager.get_results()) == 30
    assert await pager.next_page() == []
    assert src.offsets == [0]


@pytest.mark.asyncio
async def test_batch_received_count_drives_has_more():
    async def fetch(offset):
        # one of the 30 upstream entries was dropped while mapping
        return Batch(list(range(29)), 30)

    pager = Pager(fetch, 30)

    assert len(await pager.get_results()) == 29
    assert pager.has_more()


def test_context_state_round_trip():
    ctx = SourceContext.restore('{"credential_index": 2, "auth_token": "t"}')
    assert ctx.credential_index == 2
    assert ctx.state == {"auth_token": "t"}

    ctx.credential_index = 1
    again = SourceContext.restore(ctx.dump())
    assert again.credential_index == 1
    assert again.state == {"auth_token": "t"}


def test_context_restore_tolerates_bad_state():
    assert SourceContext.restore(None).credential_index == 0
    assert SourceContext.restore("not json").state == {}
    assert SourceContext.restore("[1, 2]").state == {}


def test_context_offset():
    assert SourceContext(page=1).offset(20) == 0
    assert SourceContext(page=3).offset(20) == 40
    assert SourceContext(page=0).offset(20) == 0
