"""
Configuration tests - index configuration, distance metrics, server settings
and the Client() / AdminClient() factories
"""
import pytest

import seekql
from seekql.client.configuration import DistanceMetric, HNSWConfiguration, ServerConfig
from seekql.client.errors import ConfigError


class TestDistanceMetric:

    @pytest.mark.parametrize("name, expected", [
        ("l2", DistanceMetric.L2),
        ("COSINE", DistanceMetric.COSINE),
        ("inner_product", DistanceMetric.INNER_PRODUCT),
        ("ip", DistanceMetric.INNER_PRODUCT),
        (DistanceMetric.L2, DistanceMetric.L2),
    ])
    def test_parse(self, name, expected):
        assert DistanceMetric.parse(name) is expected

    def test_unknown(self):
        with pytest.raises(ConfigError):
            DistanceMetric.parse("hamming")

    def test_sql_functions(self):
        assert DistanceMetric.L2.sql_function == "l2_distance"
        assert DistanceMetric.COSINE.sql_function == "cosine_distance"
        assert DistanceMetric.INNER_PRODUCT.sql_function == "inner_product"


class TestHNSWConfiguration:

    def test_defaults(self):
        config = HNSWConfiguration(dimension=128)
        assert config.distance is DistanceMetric.L2

    def test_string_distance(self):
        assert HNSWConfiguration(dimension=3, distance="cosine").distance is DistanceMetric.COSINE

    @pytest.mark.parametrize("dimension", [0, -1, 1.5, True, "3"])
    def test_invalid_dimension(self, dimension):
        with pytest.raises(ConfigError):
            HNSWConfiguration(dimension=dimension)


class TestServerConfig:
    """SERVER_* environment variables"""

    def test_from_env(self):
        config = ServerConfig.from_env({
            "SERVER_HOST": "10.0.0.1",
            "SERVER_PORT": "3306",
            "SERVER_TENANT": "tenant1",
            "SERVER_DATABASE": "db1",
            "SERVER_USER": "admin",
            "SERVER_PASSWORD": "secret",
        })
        assert config == ServerConfig("10.0.0.1", 3306, "tenant1", "db1", "admin", "secret")

    def test_defaults_and_password_fallback(self):
        config = ServerConfig.from_env({"SERVER_HOST": "h", "SEEKDB_PASSWORD": "pw"})
        assert config == ServerConfig(host="h", port=2881, tenant="sys", database="test", user="root", password="pw")

    def test_missing_host(self):
        with pytest.raises(ConfigError, match="SERVER_HOST"):
            ServerConfig.from_env({})

    def test_bad_port(self):
        with pytest.raises(ConfigError):
            ServerConfig.from_env({"SERVER_HOST": "h", "SERVER_PORT": "abc"})


class TestFactories:
    """Client() and AdminClient() never connect on construction"""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ("SERVER_HOST", "SERVER_PORT", "SERVER_TENANT", "SERVER_DATABASE",
                     "SERVER_USER", "SERVER_PASSWORD", "SEEKDB_PASSWORD"):
            monkeypatch.delenv(name, raising=False)

    def test_explicit_parameters(self):
        client = seekql.Client(host="h", port=1234, tenant="t", database="d", user="u", password="p")
        server = client._server
        assert isinstance(server, seekql.RemoteServerClient)
        assert (server.host, server.port, server.full_user, server.database, server.password) == (
            "h", 1234, "u@t", "d", "p"
        )
        assert not server.is_connected()

    def test_password_from_environment(self, monkeypatch):
        monkeypatch.setenv("SEEKDB_PASSWORD", "from-env")
        client = seekql.Client(host="h")
        assert client._server.password == "from-env"
        assert client._server.full_user == "root@sys"

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("SERVER_HOST", "envhost")
        monkeypatch.setenv("SERVER_DATABASE", "envdb")
        client = seekql.Client()
        assert client._server.host == "envhost"
        assert client._server.database == "envdb"

    def test_no_host_anywhere(self):
        with pytest.raises(ConfigError):
            seekql.Client()

    def test_admin_client_uses_information_schema(self):
        admin = seekql.AdminClient(host="h", user="u")
        assert admin._server.database == "information_schema"
        assert not hasattr(admin, "create_collection")
