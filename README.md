# corelog

The building blocks of a structured, leveled logger, using only the
standard library.

## What is in it

- `corelog.level`: `Level`, an integer subclass with the named levels
  `Level.DEBUG`, `Level.INFO`, `Level.WARN`, `Level.ERROR`, `Level.DPANIC`,
  `Level.PANIC` and `Level.FATAL`. `str(level)` gives the lower-case name,
  `level.capital_string()` the all-caps one, and `level.enabled(other)` is
  true when `other` is at or above `level`. `parse_level` accepts lower,
  upper or mixed case, treats `""` as info, and raises `ValueError` for
  anything else. `lowercase_color_string` and `capital_color_string` wrap
  the names in ANSI colour codes.
- `corelog.marshaler`: the `ObjectMarshaler` and `ArrayMarshaler` protocols
  (`marshal_log_object(enc)` / `marshal_log_array(enc)`), and
  `ObjectMarshalerFunc` / `ArrayMarshalerFunc`, which wrap a plain function.
- `corelog.field`: `Field` and `FieldType`. `Field.add_to(enc)` writes the
  field to an object encoder. If a marshaler, stringer, error or reflected
  value fails, its message is recorded under `<key>Error`. Exception groups
  and objects with an `errors()` method get a `<key>Causes` array.
  `Field.equals` compares two fields, deeply for rich values.
  `add_fields`, `encode_error` and `encode_stringer` are available directly.
- `corelog.entry`: `Entry`, `EntryCaller` (`full_path()`, `trimmed_path()`)
  and `new_entry_caller`. It also has the abstract `Core` class (`enabled`,
  `with_fields`, `check`, `write`, `sync`) and `CheckedEntry`, the entry
  together with the cores that accepted it. `add_core` and `should` build a
  `CheckedEntry`. After writing, `CheckedEntry.write` follows its
  `CheckWriteAction`: `PANIC` raises `LogPanic`, `GOEXIT` raises
  `RoutineExit`, and `FATAL` calls `sys.exit(1)`. Core failures are reported
  on `error_output`, and so is a second write of the same entry.
- Core wrappers:
  - `corelog.hook.register_hooks(core, *hooks)` calls each hook with every
    entry the wrapped core accepts.
  - `corelog.increase_level.new_increase_level_core(core, level)` only lets
    through levels that `level` enables. It raises `ValueError` if `level`
    would enable a level the core does not.
  - `corelog.sampler.new_sampler_with_options(core, tick, first, thereafter,
    *options)` (or `new_sampler`) logs the first `first` entries per level
    and message in each tick, then every `thereafter`-th one. `tick` is a
    `timedelta` or a number of nanoseconds. `sampler_hook(fn)` reports each
    `SamplingDecision` to `fn`.
- Encoders:
  - `corelog.encoder.EncoderConfig` holds the keys and the primitive
    encoders: level (`lowercase_level_encoder`, `capital_level_encoder`,
    and the colour variants), time (`epoch_time_encoder`,
    `epoch_millis_time_encoder`, `epoch_nanos_time_encoder`,
    `iso8601_time_encoder`, `rfc3339_time_encoder`,
    `rfc3339nano_time_encoder`, `time_encoder_of_layout`), duration
    (`seconds_duration_encoder`, `nanos_duration_encoder`,
    `millis_duration_encoder`, `string_duration_encoder`), caller
    (`full_caller_encoder`, `short_caller_encoder`) and name
    (`full_name_encoder`). The `*_from_text` functions choose an encoder by
    name. `encoder_config_from_dict` builds a config from decoded JSON or
    YAML with camel-case keys (`messageKey`, `timeEncoder`, …).
    `format_time` formats with reference-time layouts such as
    `2006-01-02T15:04:05Z07:00`, and `format_duration` renders values such
    as `1m0s`.
  - `corelog.json_encoder.new_json_encoder(config)` returns a `JSONEncoder`.
    Context added through its `add_*` methods is kept, `clone()` copies it,
    and `encode_entry(entry, fields)` returns one JSON line as a `str`.
    Values with no dedicated type go through `DefaultReflectedEncoder`, or
    through `config.new_reflected_encoder` if one is set.
  - `corelog.memory_encoder.MapObjectEncoder` collects fields into the dict
    `fields`, with `SliceArrayEncoder` for arrays. This is handy for
    inspecting what a field or marshaler produces.

## Example

```python
from datetime import datetime, timezone

from corelog.encoder import EncoderConfig, epoch_time_encoder, lowercase_level_encoder
from corelog.entry import Entry
from corelog.field import Field, FieldType
from corelog.json_encoder import new_json_encoder
from corelog.level import Level

config = EncoderConfig(
    message_key="msg",
    level_key="level",
    time_key="ts",
    encode_level=lowercase_level_encoder,
    encode_time=epoch_time_encoder,
)
encoder = new_json_encoder(config)
entry = Entry(
    level=Level.INFO,
    time=datetime(1970, 1, 1, tzinfo=timezone.utc),
    message="hello",
)
line = encoder.encode_entry(
    entry, [Field(key="user", type=FieldType.STRING, string="alice")]
)
print(line, end="")
# {"level":"info","ts":0,"msg":"hello","user":"alice"}
```

## Writing a core and sampling it

The package has no ready-made core that writes to a file or stream, so
you supply one by subclassing `Core`:

```python
from datetime import datetime, timedelta, timezone

from corelog.entry import Core, Entry, add_core
from corelog.level import Level
from corelog.sampler import new_sampler_with_options


class ListCore(Core):
    def __init__(self):
        self.lines = []

    def enabled(self, level):
        return level >= Level.INFO

    def with_fields(self, fields):
        return self

    def check(self, entry, ce):
        return add_core(ce, entry, self) if self.enabled(entry.level) else ce

    def write(self, entry, fields):
        self.lines.append(entry.message)

    def sync(self):
        pass


sink = ListCore()
sampled = new_sampler_with_options(sink, timedelta(seconds=1), 2, 0)
now = datetime.now(timezone.utc)
for _ in range(5):
    ce = sampled.check(Entry(level=Level.INFO, message="msg", time=now), None)
    if ce is not None:
        ce.write()
print(sink.lines)  # ['msg', 'msg']
```

## What it does not do

corelog has no high-level logger with methods like `info` or `error`. It has
no core that writes to files or streams, no console (plain-text) encoder, and
no loading of configuration files. It provides the pieces that such a logger
is built from.

## Running the tests

```
pip install -e ".[test]"
pytest
```