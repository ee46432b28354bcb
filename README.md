# mrcdemo

Building blocks for a fully simulated medical robot control stack. Nothing in
it talks to hardware. The pieces are:

- `mrcdemo.sensor`: `SensorSimulator` produces noisy sine/cosine samples on
  three channels. `SensorPipeline` samples it at a fixed rate on a background
  thread and tracks the effective rate and missed deadlines.
- `mrcdemo.channel`: `DoubleBufferChannel`, a lock-protected front/back buffer.
  One writer uses it to hand values to many readers.
- `mrcdemo.protocol`: the binary wire format. Each frame has a 12-byte
  big-endian header (magic `0x4D524344`, version 1) followed by a big-endian
  payload. The message types are `Ping`, `Pong`, `SensorFrame`, `AlgoResult`
  and `StatusFrame`. Malformed bytes raise `ProtocolError`.
- `mrcdemo.ipc_client` / `mrcdemo.ipc_server`: `IpcClient` and `IpcServer`
  carry those frames over TCP, decoding incoming frames on a receiver thread.
  The server answers each ping with a pong straight from its receiver thread.
  All timeouts are in seconds.
- `mrcdemo.heartbeat`: `HeartbeatMonitor` pings through an `IpcClient` and
  tracks health, round-trip time and the number of unanswered pings.
- `mrcdemo.control_loop`: `ControlLoop` runs once for each new sensor sample.
  It forwards the sample to the worker and uses the latest `AlgoResult` as the
  command, or 0 when there is none. It drives an `ActuatorSimulator`
  (`mrcdemo.actuator`) and writes the metrics into a `StatusStore`
  (`mrcdemo.status`).
- `mrcdemo.config`: `Config`, which holds dotted, case-insensitive keys read
  from INI files.
- `mrcdemo.log`: process-wide logging with per-thread names, set up from a
  configuration, and an optional sink that receives every line.
- `mrcdemo.fault`: `FaultInjector`, which makes a process crash, hang or slow
  down when the configuration asks for it.
- `mrcdemo.device`: `DeviceSimulator`, a proportional-control device with a
  noisy sensor and listener lists for state updates and start/stop.
- `mrcdemo.telemetry`: `TelemetryWindow`, a sliding window of position and
  sensor points together with the axis ranges a chart of them should use.

## Installation

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Commands

Both commands take `--config PATH`, the path of an INI file. Without it they
use their defaults. Logging is set up from the `[logging]` keys: `pattern`,
`level`, `channel` (`console` or `file`) and `file`.

### Algorithm worker

```
mrcdemo-algo-worker --config worker.ini
```

The worker listens for one controller on `ipc.host`/`ipc.port` (default
`127.0.0.1:45678`). Once it is listening it writes a single ready byte `R` to
standard output. It answers pings at once. For each sensor frame it returns an
`AlgoResult` whose output is `0.6 * A + 0.3 * B + 0.1 * C`, after waiting
`algo.compute_delay_ms` (default 10).

The `[fault]` section applies only when `fault.enable` is true:

- `crash_on_start` aborts the process.
- `hang_on_start` blocks forever.
- `extra_delay_ms` adds delay to every result.

The worker exits when the controller disconnects, or on SIGINT/SIGTERM.

### Stress test

```
mrcdemo-stress-test --config stress.ini
```

This runs one producer and two readers over a `DoubleBufferChannel` for
`stress_test.duration_sec` seconds (default 10). It then logs:

- how many values were produced
- the publish count
- the reads per reader
- any violations of sequence monotonicity

`run_stress_test(duration_sec)` does the same from Python and returns a
`StressResult`.

## Library use

```python
from mrcdemo.sensor import SensorPipeline
from mrcdemo.actuator import ActuatorSimulator, ControlCommand

with SensorPipeline(200) as pipeline:
    snapshot = pipeline.latest()

actuator = ActuatorSimulator()
actuator.apply(ControlCommand(based_on_sensor_seq=snapshot.latest.seq, cmd_value=0.5), 0.005)
print(actuator.state())
```

Encoding and decoding a frame:

```python
from mrcdemo.protocol import HEADER_SIZE, Ping, decode_header, decode_payload, encode_frame

data = encode_frame(Ping(seq=1, t0_monotonic_ns=0))
header = decode_header(data)
ping = decode_payload(header.type, data[HEADER_SIZE:])
```

Talking to a running worker from the controller side:

```python
from mrcdemo.actuator import ActuatorSimulator
from mrcdemo.control_loop import ControlLoop, ControlLoopParams
from mrcdemo.heartbeat import HeartbeatMonitor, HeartbeatParams
from mrcdemo.ipc_client import IpcClient
from mrcdemo.sensor import SensorPipeline
from mrcdemo.status import StatusStore

status = StatusStore()
with SensorPipeline(200) as sensor, IpcClient() as client:
    if client.connect(("127.0.0.1", 45678), timeout=0.5):
        with HeartbeatMonitor(client, HeartbeatParams()) as heartbeat, \
             ControlLoop(sensor, client, ActuatorSimulator(), status, ControlLoopParams()):
            ...  # read status.read() and heartbeat.healthy() as needed
```

## What the package does not do

There is no controller command and no graphical console. Nothing in the
package starts the worker, waits for its ready byte, or restarts it when the
heartbeat reports it unhealthy. `IpcClient`, `HeartbeatMonitor`, `ControlLoop`
and `StatusStore` are provided as parts, and the application wires them
together as shown above. There is also no publish/subscribe transport beyond
the TCP link described here.