import pytest

from halstore.config import StorageConfig
from halstore.errors import InvalidArgument


def test_defaults() -> None:
    config = StorageConfig()
    assert config.chunk_size == 2_000_000
    assert config.compression_level == 9
    assert config.mdc_nelmts == 11
    assert config.rdcc_nslots == 51
    assert config.rdcc_nbytes == 100_000_000
    assert config.rdcc_w0 == 0.25
    assert config.file_kwargs() == {"rdcc_nslots": 51, "rdcc_nbytes": 100_000_000, "rdcc_w0": 0.25}
    assert config.dataset_kwargs()["compression_opts"] == 9


def test_dict_round_trip() -> None:
    config = StorageConfig(chunk_size=1024, compression_level=0, rdcc_w0=1.0)
    assert StorageConfig.from_dict(config.to_dict()) == config


@pytest.mark.parametrize(
    "kwargs",
    [
        {"chunk_size": 0},
        {"compression_level": 10},
        {"compression_level": -1},
        {"rdcc_w0": 1.5},
        {"rdcc_nslots": 0},
    ],
)
def test_invalid_values_are_rejected(kwargs: dict) -> None:
    with pytest.raises(InvalidArgument):
        StorageConfig(**kwargs)


def test_from_env_overrides() -> None:
    config = StorageConfig.from_env(
        {"HALSTORE_CHUNK_SIZE": "4096", "HALSTORE_RDCC_W0": "0.5", "HALSTORE_COMPRESSION_LEVEL": " "}
    )
    assert config.chunk_size == 4096
    assert config.rdcc_w0 == 0.5
    assert config.compression_level == 9

    with pytest.raises(InvalidArgument, match="HALSTORE_CHUNK_SIZE"):
        StorageConfig.from_env({"HALSTORE_CHUNK_SIZE": "big"})
