"""Built-in device profiles, in the same JSON shape an external library file uses."""

from __future__ import annotations

from typing import Any


def _float(lo: float, hi: float, precision: int = 1, unit: str | None = None, **extra: Any) -> dict:
    spec = {"type": "float", "min": lo, "max": hi, "precision": precision}
    if unit:
        spec["unit"] = unit
    return spec | extra


def _int(lo: float, hi: float, unit: str | None = None, **extra: Any) -> dict:
    spec = {"type": "int", "min": lo, "max": hi}
    if unit:
        spec["unit"] = unit
    return spec | extra


def _bool(**extra: Any) -> dict:
    return {"type": "bool"} | extra


def _enum(*values: str, **extra: Any) -> dict:
    return {"type": "enum", "values": list(values)} | extra


BATTERY_LEVEL = _int(0, 100, "%")
BATV = _float(2.5, 3.6, 2, "V", description="Battery voltage")
BATTERY_VOLTAGE = _float(2.0, 3.6, 2, "V")
DOOR_STATUS = _enum("open", "closed", weights=[1, 4])


def _device(
    device_id: str,
    name: str,
    manufacturer: str,
    category: str,
    description: str,
    fport: int,
    fields: dict[str, dict],
    normal: dict[str, Any],
    alarm: dict[str, Any] | None,
    firmware: str = "v1.0",
) -> dict:
    return {
        "id": device_id,
        "name": name,
        "manufacturer": manufacturer,
        "category": category,
        "model": name,
        "description": description,
        "firmware_version": firmware,
        "default_fport": fport,
        "payload_format": "json",
        "simulation_profile": {"fields": fields},
        "examples": {"normal": normal, "alarm": alarm},
    }


DEFAULT_LIBRARY: dict[str, Any] = {
    "metadata": {
        "version": "3.0.0",
        "last_updated": "2026-02-16",
        "categories": [
            "temperature",
            "temperature_humidity",
            "door",
            "contact",
            "leak",
            "gps",
            "meter",
            "motion",
            "air_quality",
            "multi_sensor",
        ],
        "manufacturers": ["Milesight", "Dragino", "Tektelic", "Netvox", "Elsys", "Browan"],
    },
    "devices": [
        # Temperature
        _device(
            "milesight-em300-th", "EM300-TH", "Milesight", "temperature",
            "Temperature and humidity sensor", 85,
            {
                "temperature": _float(-40, 85, 1, "°C"),
                "humidity": _float(0, 100, 1, "%"),
                "battery_level": BATTERY_LEVEL,
            },
            {"temperature": 22.5, "humidity": 45, "battery_level": 95},
            {"temperature": 85.0, "humidity": 95, "battery_level": 95},
            firmware="v1.2",
        ),
        _device(
            "elsys-ers", "ERS", "Elsys", "temperature",
            "Indoor temperature and humidity sensor", 5,
            {
                "temperature": _float(-40, 60, 1, "°C"),
                "humidity": _int(0, 100, "%"),
                "light": _int(0, 65535, "lux"),
                "motion": _int(0, 255),
                "battery_voltage": BATTERY_VOLTAGE,
                "battery_level": BATTERY_LEVEL,
            },
            {"temperature": 21.3, "humidity": 52, "light": 450, "motion": 12, "battery_voltage": 3.45, "battery_level": 95},
            {"temperature": 55.0, "humidity": 95, "light": 0, "motion": 0, "battery_voltage": 2.10, "battery_level": 10},
            firmware="v5.0",
        ),
        _device(
            "milesight-em500-pt100", "EM500-PT100", "Milesight", "temperature",
            "Industrial temperature sensor (PT100 probe)", 85,
            {
                "temperature": _float(-200, 800, 1, "°C", drift=5.0),
                "battery_level": BATTERY_LEVEL,
            },
            {"temperature": 22.0, "battery_level": 90},
            {"temperature": 350.0, "battery_level": 90},
        ),
        _device(
            "dragino-lht52", "LHT52", "Dragino", "temperature",
            "LoRaWAN temperature sensor", 2,
            {
                "TempC_SHT": _float(-40, 85, 1, "°C", description="SHT temperature"),
                "Hum_SHT": _float(0, 100, 1, "%", description="SHT humidity"),
                "BatV": BATV,
                "battery_level": BATTERY_LEVEL,
            },
            {"TempC_SHT": 23.1, "Hum_SHT": 50.0, "BatV": 3.40, "battery_level": 92},
            {"TempC_SHT": 80.0, "Hum_SHT": 10.0, "BatV": 2.60, "battery_level": 12},
            firmware="v1.3",
        ),
        _device(
            "dragino-lsn50v2", "LSN50v2", "Dragino", "temperature",
            "LoRaWAN sensor node (analog/digital inputs)", 2,
            {
                "adc_1": _float(0, 30.0, 2, "V"),
                "adc_2": _float(0, 30.0, 2, "V"),
                "digital_1": _bool(true_probability=0.1),
                "temperature": _float(-55, 125, 1, "°C"),
                "BatV": BATV,
                "battery_level": BATTERY_LEVEL,
            },
            {"adc_1": 2.45, "adc_2": 0.82, "digital_1": False, "temperature": 24.5, "BatV": 3.50, "battery_level": 95},
            {"adc_1": 28.5, "adc_2": 0, "digital_1": True, "temperature": 24.5, "BatV": 2.55, "battery_level": 8},
            firmware="v1.4",
        ),
        # Temperature + humidity
        _device(
            "dragino-lht65", "LHT65", "Dragino", "temperature_humidity",
            "LoRaWAN temperature and humidity sensor", 2,
            {
                "TempC_SHT": _float(-40, 85, 1, "°C", description="SHT temperature"),
                "Hum_SHT": _float(0, 100, 1, "%", description="SHT humidity"),
                "TempC_DS": _float(-55, 125, 1, "°C", description="External DS18B20"),
                "BatV": BATV,
                "battery_level": BATTERY_LEVEL,
            },
            {"TempC_SHT": 22.8, "Hum_SHT": 55.0, "TempC_DS": 4.2, "BatV": 3.48, "battery_level": 94},
            {"TempC_SHT": -30.0, "Hum_SHT": 95.0, "TempC_DS": -45.0, "BatV": 2.55, "battery_level": 8},
            firmware="v1.8",
        ),
        # Door / contact
        _device(
            "dragino-lds02", "LDS02", "Dragino", "door",
            "LoRaWAN door sensor", 2,
            {
                "DOOR_OPEN_STATUS": _enum("open", "closed", weights=[1, 4], description="Dragino door status"),
                "open_count": _int(0, 65535, increment=True),
                "last_open_duration": _int(0, 65535, "sec"),
                "BatV": BATV,
                "battery_level": BATTERY_LEVEL,
            },
            {"DOOR_OPEN_STATUS": "closed", "open_count": 142, "last_open_duration": 8, "BatV": 3.40, "battery_level": 88},
            {"DOOR_OPEN_STATUS": "open", "open_count": 143, "last_open_duration": 3600, "BatV": 3.40, "battery_level": 88},
            firmware="v1.5",
        ),
        _device(
            "netvox-r311a", "R311A", "Netvox", "door",
            "Wireless door/window sensor", 6,
            {
                "door": _bool(true_probability=0.2, description="true = open, false = closed"),
                "battery_voltage": BATTERY_VOLTAGE,
                "battery_level": BATTERY_LEVEL,
            },
            {"door": False, "battery_voltage": 3.0, "battery_level": 85},
            {"door": True, "battery_voltage": 3.0, "battery_level": 85},
            firmware="v2.1",
        ),
        _device(
            "milesight-ws101", "WS101", "Milesight", "door",
            "Smart button / door sensor", 85,
            {"door_status": DOOR_STATUS, "battery_level": BATTERY_LEVEL},
            {"door_status": "closed", "battery_level": 92},
            {"door_status": "open", "battery_level": 92},
            firmware="v1.4",
        ),
        _device(
            "milesight-ws301", "WS301", "Milesight", "contact",
            "Magnetic contact switch", 85,
            {"door_status": DOOR_STATUS, "battery_level": BATTERY_LEVEL},
            {"door_status": "closed", "battery_level": 94},
            {"door_status": "open", "battery_level": 94},
        ),
        _device(
            "milesight-ws156", "WS156", "Milesight", "door",
            "Magnetic contact switch with temperature", 85,
            {
                "door_status": DOOR_STATUS,
                "temperature": _float(-20, 60, 1, "°C"),
                "battery_level": BATTERY_LEVEL,
            },
            {"door_status": "closed", "temperature": 22.0, "battery_level": 90},
            {"door_status": "open", "temperature": 22.0, "battery_level": 90},
        ),
        # Air quality
        _device(
            "elsys-ers-co2", "ERS CO2", "Elsys", "air_quality",
            "Indoor CO2 sensor with temperature and humidity", 5,
            {
                "co2": _int(0, 10000, "ppm", drift=150),
                "temperature": _float(-40, 60, 1, "°C"),
                "humidity": _int(0, 100, "%"),
                "light": _int(0, 65535, "lux"),
                "battery_voltage": BATTERY_VOLTAGE,
                "battery_level": BATTERY_LEVEL,
            },
            {"co2": 580, "temperature": 22.1, "humidity": 55, "light": 320, "battery_voltage": 3.38, "battery_level": 92},
            {"co2": 5000, "temperature": 22.1, "humidity": 55, "light": 320, "battery_voltage": 2.20, "battery_level": 12},
            firmware="v5.0",
        ),
        _device(
            "milesight-am319", "AM319", "Milesight", "air_quality",
            "9-in-1 indoor air quality sensor", 85,
            {
                "co2": _int(400, 5000, "ppm", drift=150),
                "pm2_5": _int(0, 500, "µg/m³"),
                "pm10": _int(0, 500, "µg/m³"),
                "temperature": _float(-20, 60, 1, "°C"),
                "humidity": _float(0, 100, 1, "%"),
                "tvoc": _int(0, 60000, "ppb"),
                "pressure": _float(300, 1100, 1, "hPa"),
                "battery_level": BATTERY_LEVEL,
            },
            {"co2": 650, "pm2_5": 12, "pm10": 18, "temperature": 23.5, "humidity": 48, "tvoc": 120, "pressure": 1013.2, "battery_level": 92},
            {"co2": 4500, "pm2_5": 350, "pm10": 450, "temperature": 23.5, "humidity": 48, "tvoc": 50000, "pressure": 1013.2, "battery_level": 92},
        ),
        _device(
            "milesight-am107", "AM107", "Milesight", "air_quality",
            "7-in-1 indoor air quality sensor", 85,
            {
                "co2": _int(400, 5000, "ppm", drift=150),
                "temperature": _float(-20, 60, 1, "°C"),
                "humidity": _float(0, 100, 1, "%"),
                "tvoc": _int(0, 60000, "ppb"),
                "pressure": _float(300, 1100, 1, "hPa"),
                "light": _int(0, 65535, "lux"),
                "pir": _enum("trigger", "idle", weights=[1, 3]),
                "battery_level": BATTERY_LEVEL,
            },
            {"co2": 520, "temperature": 22.8, "humidity": 50, "tvoc": 85, "pressure": 1015.0, "light": 380, "pir": "idle", "battery_level": 90},
            {"co2": 4800, "temperature": 22.8, "humidity": 50, "tvoc": 55000, "pressure": 1015.0, "light": 0, "pir": "trigger", "battery_level": 90},
            firmware="v1.1",
        ),
        # Leak / water level
        _device(
            "dragino-ldds75", "LDDS75", "Dragino", "leak",
            "Distance detection sensor (water level)", 2,
            {
                "distance": _int(20, 750, "cm"),
                "BatV": BATV,
                "battery_level": BATTERY_LEVEL,
                "sensor_flag": _bool(true_probability=0.05),
            },
            {"distance": 250, "BatV": 3.45, "battery_level": 92, "sensor_flag": False},
            {"distance": 25, "BatV": 3.45, "battery_level": 92, "sensor_flag": True},
            firmware="v1.3",
        ),
        _device(
            "netvox-r718wa2", "R718WA2", "Netvox", "leak",
            "Wireless water leak detector", 6,
            {
                "water_leak": _bool(true_probability=0.02),
                "battery_voltage": BATTERY_VOLTAGE,
                "battery_level": BATTERY_LEVEL,
            },
            {"water_leak": False, "battery_voltage": 3.25, "battery_level": 88},
            {"water_leak": True, "battery_voltage": 3.25, "battery_level": 88},
            firmware="v1.8",
        ),
        # GPS
        _device(
            "generic-tbs220", "TBS220", "", "gps",
            "GPS tracker", 102,
            {
                "gps_lat": _float(-90, 90, 4),
                "gps_lon": _float(-180, 180, 4),
                "battery_level": BATTERY_LEVEL,
            },
            {"gps": {"lat": 40.7128, "lon": -74.0060}, "battery_level": 80},
            {"gps": {"lat": 0, "lon": 0}, "battery_level": 10},
            firmware="v1.2",
        ),
        _device(
            "dragino-lt-22222-l", "LT-22222-L", "Dragino", "gps",
            "LoRaWAN tracker with GPS", 2,
            {
                "latitude": _float(-90, 90, 6),
                "longitude": _float(-180, 180, 6),
                "altitude": _int(-100, 10000, "m"),
                "speed": _float(0, 200, 1, "km/h"),
                "battery_level": BATTERY_LEVEL,
                "gps_fix": _bool(true_probability=0.9),
            },
            {"latitude": 37.7749, "longitude": -122.4194, "altitude": 25, "speed": 0, "battery_level": 78, "gps_fix": True},
            {"latitude": 0, "longitude": 0, "altitude": 0, "speed": 0, "battery_level": 15, "gps_fix": False},
            firmware="v1.6",
        ),
        # Meters
        _device(
            "tektelic-kona-pulse", "KONA Pulse Counter", "Tektelic", "meter",
            "Pulse counter for utility metering", 10,
            {
                "pulse_count": _int(0, 4294967295, increment=True),
                "pulse_rate": _float(0, 10000, 1, "pulses/min"),
                "battery_level": BATTERY_LEVEL,
                "temperature": _float(-40, 85, 1, "°C"),
                "meter_type": {"type": "string", "static": True, "default": "water"},
            },
            {"pulse_count": 123456, "pulse_rate": 12.5, "battery_level": 89, "temperature": 22.5},
            {"pulse_count": 123456, "pulse_rate": 0, "battery_level": 5, "temperature": -35},
            firmware="v2.3",
        ),
        _device(
            "milesight-em500-pp", "EM500-PP", "Milesight", "meter",
            "Pipe pressure sensor", 85,
            {
                "pressure": _float(0, 3600, 1, "kPa", drift=50.0),
                "temperature": _float(-30, 70, 1, "°C"),
                "battery_level": BATTERY_LEVEL,
            },
            {"pressure": 250.5, "temperature": 22.0, "battery_level": 92},
            {"pressure": 3500.0, "temperature": 22.0, "battery_level": 92},
        ),
        # Motion
        _device(
            "milesight-tbms100", "TBMS100", "Milesight", "motion",
            "PIR motion sensor", 102,
            {
                "motion_detected": _bool(true_probability=0.3),
                "motion_count": _int(0, 65535, increment=True),
                "temperature": _float(-20, 60, 1, "°C"),
                "battery_level": BATTERY_LEVEL,
            },
            {"motion_detected": False, "motion_count": 856, "temperature": 23.2, "battery_level": 94},
            {"motion_detected": True, "motion_count": 857, "temperature": 23.2, "battery_level": 94},
            firmware="v1.1",
        ),
        # Multi-sensor
        _device(
            "milesight-em300-mcs", "EM300-MCS", "Milesight", "multi_sensor",
            "Magnetic contact switch with temperature and humidity", 85,
            {
                "door_status": DOOR_STATUS,
                "temperature": _float(-30, 70, 1, "°C"),
                "humidity": _float(0, 100, 1, "%"),
                "battery_level": BATTERY_LEVEL,
            },
            {"door_status": "closed", "temperature": 4.2, "humidity": 65, "battery_level": 91},
            {"door_status": "open", "temperature": 25.0, "humidity": 65, "battery_level": 91},
        ),
        _device(
            "milesight-em310-udl", "EM310-UDL", "Milesight", "multi_sensor",
            "Ultrasonic distance / level sensor", 85,
            {
                "distance": _int(25, 4500, "mm"),
                "temperature": _float(-30, 70, 1, "°C"),
                "battery_level": BATTERY_LEVEL,
            },
            {"distance": 1200, "temperature": 22.5, "battery_level": 92},
            {"distance": 30, "temperature": 22.5, "battery_level": 92},
        ),
    ],
}
