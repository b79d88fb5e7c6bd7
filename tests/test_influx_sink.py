import logging

import pytest

from conftest import OBSERVED_AT, FakeInfluxClient
from influx_sink import InfluxSink, LogSink, SinkError, to_point
from ruuvi_pipeline import PhysicalReading
from sensor_registry import InfluxConfig


def make_reading(rssi=None):
    return PhysicalReading(
        sensor_name="Master bedroom",
        temperature_c=2.06,
        humidity_pct=25.5,
        pressure_kpa=101.25,
        battery_voltage_v=3.18,
        tx_power_dbm=16.0,
        captured_at=OBSERVED_AT,
        rssi_dbm=rssi,
    )


class TestToPoint:
    """Line protocol shape of a reading."""

    def test_measurement_and_tag(self):
        lp = to_point(make_reading()).to_line_protocol()
        assert lp.startswith("Sensor\\ data,location=Master\\ bedroom ")

    def test_fields(self):
        lp = to_point(make_reading()).to_line_protocol()
        for name in ("temperature=", "humidity=", "atmosphere_pressure=", "battery_voltage="):
            assert name in lp
        assert "rssi=" not in lp

    def test_rssi_when_known(self):
        lp = to_point(make_reading(rssi=-67.0)).to_line_protocol()
        assert "rssi=-67" in lp

    def test_custom_measurement(self):
        lp = to_point(make_reading(), "ruuvi").to_line_protocol()
        assert lp.startswith("ruuvi,location=")


class TestInfluxSink:
    """Writes go through the client once per reading."""

    def test_write(self, fake_client):
        sink = InfluxSink(fake_client)
        sink.write(make_reading())
        assert len(fake_client.records) == 1
        assert sink.written == 1

    def test_callable(self, fake_client):
        sink = InfluxSink(fake_client, measurement="ruuvi")
        sink(make_reading())
        assert fake_client.records[0].to_line_protocol().startswith("ruuvi,")

    def test_failure_wrapped(self, caplog):
        sink = InfluxSink(FakeInfluxClient(fail=ConnectionError("refused")))
        with caplog.at_level(logging.ERROR, logger="influx_sink"):
            with pytest.raises(SinkError):
                sink.write(make_reading())
        assert "refused" in caplog.text
        assert sink.written == 0

    def test_close(self, fake_client):
        InfluxSink(fake_client).close()
        assert fake_client.closed

    def test_from_config(self, monkeypatch):
        created = {}

        def fake_client(**kwargs):
            created.update(kwargs)
            return FakeInfluxClient()

        monkeypatch.setattr("influx_sink.InfluxDBClient3", fake_client)
        cfg = InfluxConfig(url="http://influxdb:8086", token="tok", org="home", bucket="Sensor data",
                           measurement="ruuvi")
        sink = InfluxSink.from_config(cfg)
        assert created == {"host": "http://influxdb:8086", "token": "tok", "org": "home", "database": "Sensor data"}
        assert sink.measurement == "ruuvi"


class TestLogSink:
    def test_logs_line_protocol(self, caplog):
        sink = LogSink()
        with caplog.at_level(logging.INFO, logger="influx_sink"):
            sink(make_reading())
        assert "location=Master\\ bedroom" in caplog.text
        assert sink.written == 1
