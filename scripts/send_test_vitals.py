#!/usr/bin/env python3
"""
Send readings to a running VitalWatch backend and watch the alerts it raises.

Usage:
    # Post the abnormal fixture reading (expect 7 alerts)
    python scripts/send_test_vitals.py send --patient-id 1

    # Post a single custom reading
    python scripts/send_test_vitals.py send-reading --patient-id 1 --hr 130 --spo2 88

    # Follow the live alert stream for one patient ('*' for all)
    python scripts/send_test_vitals.py listen --patient-id 1
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

import httpx
import typer

app = typer.Typer()

BASE_URL = "http://localhost:8000"

# Every field out of range; the backend should raise exactly these seven alerts.
ABNORMAL_READING = {
    "hr": 45,
    "pulse": 45,
    "spo2": 85,
    "abp": "85/60",
    "pap": "15/13",
    "etco2": 50,
    "awrr": 25,
    "source": "test",
}
EXPECTED_ALERTS = [
    "HeartRate 45 low (critical)",
    "Pulse 45 low (critical)",
    "SpO2 85 low (warning)",
    "ArterialSystolic 85 low (warning)",
    "PulmonaryDiastolic 13 high (warning)",
    "EtCO2 50 high (warning)",
    "AirwayRespRate 25 high (warning)",
]


async def _post_readings(base_url: str, payload: dict | list) -> None:
    async with httpx.AsyncClient(timeout=15.0) as client:
        response = await client.post(f"{base_url}/api/v1/vitals/", json=payload)
    if response.status_code != 201:
        typer.echo(f"Failed: {response.status_code} {response.text}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Saved: {response.json()}")


@app.command()
def send(
    patient_id: int = typer.Option(1, help="Patient ID"),
    base_url: str = typer.Option(BASE_URL, help="Backend base URL"),
) -> None:
    """Post the all-abnormal fixture reading."""
    payload = {
        **ABNORMAL_READING,
        "patient_id": patient_id,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    typer.echo(json.dumps(payload, indent=2))
    asyncio.run(_post_readings(base_url, payload))
    typer.echo("\nExpected alerts (7 total):")
    for line in EXPECTED_ALERTS:
        typer.echo(f"- {line}")


@app.command()
def send_reading(
    patient_id: int = typer.Option(1, help="Patient ID"),
    hr: Optional[int] = typer.Option(None, help="Heart rate (bpm)"),
    pulse: Optional[int] = typer.Option(None, help="Pulse (bpm)"),
    spo2: Optional[int] = typer.Option(None, help="SpO2 (%)"),
    abp: Optional[str] = typer.Option(None, help="Arterial pressure sys/dia[/mean]"),
    pap: Optional[str] = typer.Option(None, help="Pulmonary pressure sys/dia[/mean]"),
    etco2: Optional[int] = typer.Option(None, help="EtCO2 (mmHg)"),
    awrr: Optional[int] = typer.Option(None, help="Airway respiratory rate (/min)"),
    source: str = typer.Option("manual", help="Reading source tag"),
    base_url: str = typer.Option(BASE_URL, help="Backend base URL"),
) -> None:
    """Post one reading built from the given values."""
    payload = {
        "patient_id": patient_id,
        "hr": hr,
        "pulse": pulse,
        "spo2": spo2,
        "abp": abp,
        "pap": pap,
        "etco2": etco2,
        "awrr": awrr,
        "source": source,
    }
    asyncio.run(_post_readings(base_url, payload))


@app.command()
def listen(
    patient_id: str = typer.Option("*", help="Patient ID to follow ('*' for all patients)"),
    base_url: str = typer.Option(BASE_URL, help="Backend base URL"),
) -> None:
    """Print events from the SSE alert stream until interrupted."""
    try:
        asyncio.run(_listen(base_url, patient_id))
    except KeyboardInterrupt:
        typer.echo("\nDisconnected")


async def _listen(base_url: str, patient_id: str) -> None:
    url = f"{base_url}/api/v1/alerts/stream"
    typer.echo(f"Connecting to {url} (subject {patient_id})")
    async with httpx.AsyncClient(timeout=None) as client:
        async with client.stream("GET", url, params={"subject_id": patient_id}) as response:
            if response.status_code != 200:
                typer.echo(f"Connection failed: {response.status_code}", err=True)
                raise typer.Exit(1)
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                try:
                    message = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    typer.echo(line)
                    continue
                _print_event(message)


def _print_event(message: dict) -> None:
    event = message.get("event")
    if event == "vital-alert":
        alert = message.get("alert", {})
        typer.echo(
            f"[{alert.get('severity', '?').upper()}] patient {alert.get('subjectId')} "
            f"{alert.get('vitalKind')} {alert.get('value')} {alert.get('direction')}"
        )
    elif event == "vital-update":
        reading = message.get("reading", {})
        typer.echo(f"reading for patient {reading.get('subjectId')} at {reading.get('timestamp')}")
    else:
        typer.echo(json.dumps(message))


if __name__ == "__main__":
    app()
