import asyncio
from pathlib import Path

from conftest import CHROME_UA, FakeBrowserType, make_options
from manual_to_pdf.monitor import ResourceErrorMonitor
from manual_to_pdf.session import SessionManager, generalize_user_agent


def _manager(browser_type: FakeBrowserType, user_dir: Path, **overrides) -> SessionManager:
    options = make_options(**overrides)
    return SessionManager(browser_type, user_dir, options, ResourceErrorMonitor(options))


def test_generalize_user_agent() -> None:
    assert generalize_user_agent(CHROME_UA) == (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/126.0.0.0 Safari/537.36")


def test_generalize_user_agent_leaves_other_agents_alone() -> None:
    ua = "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"
    assert generalize_user_agent(ua) == ua


def test_new_session_applies_derived_user_agent(browser_type: FakeBrowserType, tmp_path: Path) -> None:
    manager = _manager(browser_type, tmp_path, browser_args=("--lang=en-US",), insecure=True)
    session = asyncio.run(manager.new_session(start_new=True))

    context = browser_type.launched[0]
    assert context.user_dir == str(tmp_path)
    assert context.launch_opts["headless"] is True
    assert context.launch_opts["ignore_https_errors"] is True
    assert context.launch_opts["args"] == ["--lang=en-US"]
    assert "proxy" not in context.launch_opts
    assert session.page is context.pages[0]
    assert session.user_agent.startswith("Mozilla/5.0") and "Chrome/126.0.0.0" in session.user_agent
    assert context.cdp_sessions[0].sent == [
        ("Network.setUserAgentOverride", {"userAgent": session.user_agent})]
    assert "response" in session.page.listeners


def test_configured_user_agent_is_used_verbatim(browser_type: FakeBrowserType, tmp_path: Path) -> None:
    manager = _manager(browser_type, tmp_path, user_agent="manual-bot/1.0")
    session = asyncio.run(manager.new_session(start_new=True))
    assert session.user_agent == "manual-bot/1.0"
    assert not session.page.evaluated("() => navigator.userAgent")


def test_launches_rotate_through_proxies(browser_type: FakeBrowserType, tmp_path: Path) -> None:
    manager = _manager(browser_type, tmp_path, proxies=("http://a:1", "http://b:2"))

    async def scenario():
        return [await manager.new_session(start_new=True) for _ in range(3)]

    sessions = asyncio.run(scenario())
    assert [s.proxy for s in sessions] == ["http://a:1", "http://b:2", "http://a:1"]
    assert [c.launch_opts["proxy"] for c in browser_type.launched] == [
        {"server": "http://a:1"}, {"server": "http://b:2"}, {"server": "http://a:1"}]


def test_recycling_opens_a_new_tab_on_the_same_browser(browser_type: FakeBrowserType, tmp_path: Path) -> None:
    manager = _manager(browser_type, tmp_path)

    async def scenario():
        first = await manager.new_session(start_new=True)
        second = await manager.new_session(start_new=False, previous=first)
        return first, second

    first, second = asyncio.run(scenario())
    assert len(browser_type.launched) == 1
    assert second.context is first.context
    assert first.page.closed
    assert second.page is not first.page


def test_reset_wipes_profile_directory(browser_type: FakeBrowserType, tmp_path: Path) -> None:
    user_dir = tmp_path / "profile"
    user_dir.mkdir()
    (user_dir / "Cookies").write_text("session=1")
    manager = _manager(browser_type, user_dir)

    async def scenario():
        session = await manager.new_session(start_new=True)
        await manager.reset(session)
        return session

    session = asyncio.run(scenario())
    assert manager.reset_count == 1
    assert session.page.closed
    assert session.context.closed
    assert user_dir.is_dir()
    assert list(user_dir.iterdir()) == []


def test_reset_carries_on_after_close_errors(browser_type: FakeBrowserType, tmp_path: Path) -> None:
    user_dir = tmp_path / "profile"
    user_dir.mkdir()
    (user_dir / "Local State").write_text("{}")
    manager = _manager(browser_type, user_dir)

    async def scenario():
        session = await manager.new_session(start_new=True)
        session.page.close_error = RuntimeError("target closed")
        session.context.close_error = RuntimeError("browser has disconnected")
        await manager.reset(session)

    asyncio.run(scenario())
    assert manager.reset_count == 1
    assert list(user_dir.iterdir()) == []


def test_reset_without_session_recreates_missing_directory(browser_type: FakeBrowserType, tmp_path: Path) -> None:
    user_dir = tmp_path / "gone"
    manager = _manager(browser_type, user_dir)
    asyncio.run(manager.reset(None))
    assert user_dir.is_dir()
