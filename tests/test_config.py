import pytest

from sfucore.config import RouterConfig, SimulcastConfig


def test_simulcast_from_mapping_reads_keys():
    cfg = SimulcastConfig.from_mapping(
        {"bestqualityfirst": True, "enabletemporallayer": True}
    )
    assert cfg == SimulcastConfig(best_quality_first=True, enable_temporal_layer=True)


def test_simulcast_from_empty_mapping_matches_defaults():
    assert SimulcastConfig.from_mapping({}) == SimulcastConfig()


def test_router_from_mapping_reads_all_keys():
    cfg = RouterConfig.from_mapping(
        {
            "withstats": True,
            "maxbandwidth": 1500,
            "maxpackettrack": 500,
            "audiolevelinterval": 1000,
            "audiolevelthreshold": 40,
            "audiolevelfilter": 20,
            "simulcast": {"bestqualityfirst": True},
        }
    )
    assert cfg.with_stats is True
    assert cfg.max_bandwidth == 1500
    assert cfg.max_packet_track == 500
    assert cfg.audio_level_interval == 1000
    assert cfg.audio_level_threshold == 40
    assert cfg.audio_level_filter == 20
    assert cfg.simulcast.best_quality_first is True
    assert cfg.simulcast.enable_temporal_layer is False


def test_router_keys_are_case_insensitive():
    upper = RouterConfig.from_mapping({"MaxPacketTrack": 200, "WithStats": True})
    lower = RouterConfig.from_mapping({"maxpackettrack": 200, "withstats": True})
    assert upper == lower


def test_router_from_empty_mapping_matches_defaults():
    assert RouterConfig.from_mapping({}) == RouterConfig()


def test_router_threshold_must_fit_in_a_byte():
    with pytest.raises(ValueError):
        RouterConfig.from_mapping({"audiolevelthreshold": 256})


def test_router_bandwidth_must_not_be_negative():
    with pytest.raises(ValueError):
        RouterConfig.from_mapping({"maxbandwidth": -1})