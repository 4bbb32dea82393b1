#!/usr/bin/env python3
"""FallWatch device-motion simulator.

Streams realistic phone motion (rest, walking, occasional falls) to the
server for testing.

Usage:
    # 5 phones for one minute, a fall roughly every 20 seconds each
    python -m tools.simulator.simulate --server http://localhost:8000 --devices 5 --fall-every 20

    # Stress test: 50 phones at 60 Hz, batches of 30 events
    python -m tools.simulator.simulate --server http://localhost:8000 --devices 50 --rate 60 --batch 30
"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import random
import time
import uuid
from dataclasses import dataclass, field

import httpx

GRAVITY = 9.81


@dataclass
class SimDevice:
    device_id: str
    walking: bool
    # Scripted fall in progress: list of (offset_ms, accel_magnitude, rotation_magnitude).
    script: list[tuple[int, float, float]] = field(default_factory=list)
    script_start_ms: int = 0
    events_sent: int = 0
    falls_scripted: int = 0
    falls_reported: int = 0
    errors: int = 0


def fall_script() -> list[tuple[int, float, float]]:
    """Impact spike, a twist, then the phone lies still on the floor."""
    script = [
        (0, random.uniform(18.0, 35.0), random.uniform(1.0, 3.0)),
        (100, random.uniform(10.0, 16.0), random.uniform(4.5, 8.0)),
        (300, random.uniform(6.0, 12.0), random.uniform(5.0, 9.0)),
    ]
    # Free-fall-like low readings while the device settles.
    for offset in range(400, 1400, 50):
        script.append((offset, random.uniform(0.5, 3.5), random.uniform(0.0, 0.5)))
    return script


def _vector(magnitude: float) -> tuple[float, float, float]:
    """Random direction with the requested norm."""
    theta = random.uniform(0, 2 * math.pi)
    phi = math.acos(random.uniform(-1, 1))
    return (
        magnitude * math.sin(phi) * math.cos(theta),
        magnitude * math.sin(phi) * math.sin(theta),
        magnitude * math.cos(phi),
    )


def make_event(device: SimDevice, timestamp_ms: int) -> dict:
    """Create a single devicemotion event JSON payload."""
    if device.script:
        offset = timestamp_ms - device.script_start_ms
        while len(device.script) > 1 and device.script[1][0] <= offset:
            device.script.pop(0)
        _, accel_mag, rot_mag = device.script[0]
        if offset >= 1400:
            device.script = []
    elif device.walking:
        accel_mag = GRAVITY + 2.5 * math.sin(timestamp_ms / 90.0) + random.uniform(-0.6, 0.6)
        rot_mag = random.uniform(0.3, 1.5)
    else:
        accel_mag = GRAVITY + random.uniform(-0.2, 0.2)
        rot_mag = random.uniform(0.0, 0.1)

    ax, ay, az = _vector(accel_mag)
    alpha, beta, gamma = _vector(rot_mag)
    return {
        "timestamp_ms": timestamp_ms,
        "acceleration_including_gravity": {"x": round(ax, 3), "y": round(ay, 3), "z": round(az, 3)},
        "rotation_rate": {"alpha": round(alpha, 3), "beta": round(beta, 3), "gamma": round(gamma, 3)},
    }


async def run_device(
    client: httpx.AsyncClient,
    device: SimDevice,
    server_url: str,
    rate_hz: float,
    batch_size: int,
    fall_every_seconds: float,
    duration_seconds: float,
) -> None:
    """Simulate a single phone streaming motion events."""
    interval = 1.0 / rate_hz
    fall_probability = interval / fall_every_seconds if fall_every_seconds > 0 else 0.0
    end_time = time.monotonic() + duration_seconds
    pending: list[dict] = []

    while time.monotonic() < end_time:
        now_ms = int(time.time() * 1000)

        if not device.script and random.random() < fall_probability:
            device.script = fall_script()
            device.script_start_ms = now_ms
            device.falls_scripted += 1

        pending.append(make_event(device, now_ms))

        if len(pending) >= batch_size:
            payload = {"protocol_version": 1, "device_id": device.device_id, "events": pending}
            pending = []
            try:
                resp = await client.post(
                    f"{server_url}/api/v1/motion",
                    content=json.dumps(payload),
                    headers={"content-type": "application/json"},
                )
                if resp.status_code == 200:
                    device.events_sent += len(payload["events"])
                    device.falls_reported += len(resp.json().get("falls", []))
                else:
                    device.errors += 1
            except httpx.RequestError:
                device.errors += 1

        await asyncio.sleep(interval)


async def run_simulation(args: argparse.Namespace) -> None:
    """Run the full simulation."""
    devices = [
        SimDevice(device_id=str(uuid.uuid4()), walking=random.random() < args.walking_ratio)
        for _ in range(args.devices)
    ]

    print(f"Starting simulation: {args.devices} devices at {args.rate} Hz")
    print(f"  Batch size: {args.batch}")
    print(f"  Fall every ~{args.fall_every}s per device")
    print(f"  Duration: {args.duration}s")
    print(f"  Server: {args.server}")
    print()

    start = time.monotonic()

    async with httpx.AsyncClient(timeout=10.0) as client:
        tasks = [
            run_device(client, dev, args.server, args.rate, args.batch,
                       args.fall_every, args.duration)
            for dev in devices
        ]
        await asyncio.gather(*tasks)

        elapsed = time.monotonic() - start
        total_events = sum(d.events_sent for d in devices)
        print(f"\nSimulation complete in {elapsed:.1f}s")
        print(f"  Events sent: {total_events}")
        print(f"  Falls scripted: {sum(d.falls_scripted for d in devices)}")
        print(f"  Falls reported: {sum(d.falls_reported for d in devices)}")
        print(f"  Errors: {sum(d.errors for d in devices)}")
        print(f"  Throughput: {total_events / elapsed:.1f} events/sec")

        try:
            resp = await client.get(f"{args.server}/api/v1/stats")
        except httpx.RequestError as exc:
            print(f"\nCould not fetch server stats: {exc}")
            return
        if resp.status_code == 200:
            stats = resp.json()
            print("\nServer stats:")
            print(f"  Samples rejected: {stats['samples_rejected']}")
            print(f"  Impacts detected: {stats['impacts_detected']}")
            print(f"  Falls confirmed: {stats['falls_confirmed']}")
            print(f"  Falls suppressed (cooldown): {stats['falls_suppressed']}")
            print(f"  Pattern timeouts: {stats['pattern_timeouts']}")
            print(f"  Active devices: {stats['active_devices']['total']}")


def main():
    parser = argparse.ArgumentParser(description="FallWatch device-motion simulator")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--devices", type=int, default=5, help="Number of simulated phones")
    parser.add_argument("--duration", type=int, default=60, help="Simulation duration in seconds")
    parser.add_argument("--rate", type=float, default=50, help="Motion events per second per phone")
    parser.add_argument("--batch", type=int, default=25, help="Events per POST")
    parser.add_argument("--fall-every", type=float, default=30,
                        help="Mean seconds between falls per phone (0 disables falls)")
    parser.add_argument("--walking-ratio", type=float, default=0.5,
                        help="Fraction of phones that are walking rather than at rest")

    args = parser.parse_args()
    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
