import pytest

from srtlive.map_relay import RelayConf, RelayInfo, RelayMap, RelayMode


class Manager:
    def __init__(self, info, app_uplive, stream_name):
        self.info = info
        self.app_uplive = app_uplive
        self.stream_name = stream_name


def make_map():
    calls = []

    def factory(info, app_uplive, stream_name):
        calls.append((app_uplive, stream_name))
        return Manager(info, app_uplive, stream_name)

    return RelayMap(factory), calls


@pytest.mark.parametrize(
    "name,mode",
    [("loop", RelayMode.LOOP), ("all", RelayMode.ALL), ("hash", RelayMode.HASH), ("bogus", RelayMode.HASH)],
)
def test_mode_parsing(name, mode):
    rm, _ = make_map()
    info = rm.add_relay_conf("h/up", RelayConf(type="pull", mode=name, upstreams="a:1"))
    assert info.mode == mode


def test_add_relay_conf_fields():
    rm, _ = make_map()
    conf = RelayConf(type="push", mode="all", upstreams="h1:9000/live  h2:9000/live",
                     reconnect_interval=10, idle_streams_timeout=30)
    info = rm.add_relay_conf("h/up", conf)
    assert info == RelayInfo(type="push", mode=RelayMode.ALL,
                             upstreams=["h1:9000/live", "h2:9000/live"],
                             reconnect_interval=10, idle_streams_timeout=30)
    assert rm.get_relay_conf("h/up") is info


def test_add_relay_conf_errors():
    rm, _ = make_map()
    with pytest.raises(ValueError):
        rm.add_relay_conf("h/up", None)
    rm.add_relay_conf("h/up", RelayConf(type="pull", upstreams="a:1"))
    with pytest.raises(ValueError):
        rm.add_relay_conf("h/up", RelayConf(type="push", upstreams="b:2"))
    assert rm.get_relay_conf("h/up").type == "pull"


def test_manager_without_conf_is_none():
    rm, calls = make_map()
    assert rm.add_relay_manager("h/up", "s") is None
    assert calls == []


def test_manager_created_once_per_stream():
    rm, calls = make_map()
    rm.add_relay_conf("h/up", RelayConf(type="pull", upstreams="a:1"))
    first = rm.add_relay_manager("h/up", "s")
    second = rm.add_relay_manager("h/up", "s")
    assert first is second
    assert first.app_uplive == "h/up"
    assert first.stream_name == "s"
    assert first.info is rm.get_relay_conf("h/up")
    other = rm.add_relay_manager("h/up", "t")
    assert other is not first
    assert calls == [("h/up", "s"), ("h/up", "t")]


def test_unknown_type_gives_no_manager():
    rm, calls = make_map()
    rm.add_relay_conf("h/up", RelayConf(type="mirror", upstreams="a:1"))
    assert rm.add_relay_manager("h/up", "s") is None
    assert calls == []


def test_clear_forgets_conf_and_managers():
    rm, calls = make_map()
    rm.add_relay_conf("h/up", RelayConf(type="push", upstreams="a:1"))
    first = rm.add_relay_manager("h/up", "s")
    rm.clear()
    assert rm.get_relay_conf("h/up") is None
    assert rm.add_relay_manager("h/up", "s") is None
    rm.add_relay_conf("h/up", RelayConf(type="push", upstreams="a:1"))
    assert rm.add_relay_manager("h/up", "s") is not first
    assert len(calls) == 2