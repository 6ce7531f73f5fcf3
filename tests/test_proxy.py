from manual_to_pdf.proxy import next_proxy


def test_empty_pool_returns_none() -> None:
    assert next_proxy(0, ()) is None


def test_out_of_range_index_returns_none() -> None:
    assert next_proxy(3, ("http://a:1", "http://b:2")) is None
    assert next_proxy(-1, ("http://a:1",)) is None


def test_rotation_wraps_around_after_the_whole_pool() -> None:
    pool = ("http://a:1", "http://b:2", "http://c:3")
    index = 0
    picked = []
    for _ in range(len(pool) + 1):
        proxy, index = next_proxy(index, pool)
        picked.append(proxy)

    assert picked == ["http://a:1", "http://b:2", "http://c:3", "http://a:1"]
    assert index == 1


def test_single_proxy_pool_always_returns_it() -> None:
    assert next_proxy(0, ("http://only:8080",)) == ("http://only:8080", 0)
