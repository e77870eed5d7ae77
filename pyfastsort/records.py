"""
Record layouts and device-side record buffers.

A record is a fixed-layout value made of a numeric ``key`` and an opaque
payload (any number of scalar or small-vector members). Records are compared
on their key and always moved as whole units: the payload travels with the key.

On the device a record array is stored as a structure of arrays, one Taichi
field per member, all of the same length. This keeps every member a plain
scalar or vector field (cheap to copy from and to numpy) while the comparator
swaps all of them together.

Main objects:
- RecordLayout: description of one record (key dtype + payload members)
- RecordBuffer: the device array of records, allocated from the field pool
- PARTICLE_LAYOUT / KEY_ONLY_LAYOUT: predefined layouts

Usage:
    import numpy as np
    import taichi as ti
    import pyfastsort as ps

    ti.init(ti.gpu)

    layout = ps.records.RecordLayout(np.float32, {"ident": np.int32})
    host = np.zeros(4096, dtype=layout.numpy_dtype)
    host["key"] = np.random.rand(4096)
    host["ident"] = np.arange(4096)

    records = ps.records.RecordBuffer.from_numpy(host, layout)
    ps.bitonic.sort(records)
    result = records.to_numpy()

"""

import operator

import numpy as np
import taichi as ti

from . import pool


# numpy scalar dtype -> taichi primitive type
_TI_TYPES = {
    np.dtype(np.float32): ti.f32,
    np.dtype(np.float64): ti.f64,
    np.dtype(np.int32): ti.i32,
    np.dtype(np.int64): ti.i64,
    np.dtype(np.uint32): ti.u32,
}


def ti_type(dtype):
    """
    Taichi primitive type matching a numpy scalar dtype.

    Raises:
        ValueError: dtype is not one of the numeric types records may use
    """
    dtype = np.dtype(dtype)
    if dtype not in _TI_TYPES:
        supported = ", ".join(str(d) for d in _TI_TYPES)
        raise ValueError(f"Unsupported record member dtype '{dtype}'. Supported: {supported}")
    return _TI_TYPES[dtype]


class RecordLayout:
    """
    Fixed layout of one record: a numeric key followed by payload members.

    Args:
        key: numpy dtype of the key
        payload: mapping name -> dtype or (dtype, components). Order is kept.

    Raises:
        ValueError: non numeric dtype, reserved member name or bad component count
    """

    def __init__(self, key=np.float32, payload=None):
        ti_type(key)
        self.key = np.dtype(key)

        self.payload = {}
        for name, member in (payload or {}).items():
            if name == "key":
                raise ValueError("'key' is reserved for the sort key")
            if isinstance(member, tuple):
                dtype, n = member
            else:
                dtype, n = member, 1
            if n < 1:
                raise ValueError(f"Member '{name}' must have at least one component")
            ti_type(dtype)
            self.payload[name] = (np.dtype(dtype), int(n))

    @classmethod
    def from_numpy_dtype(cls, dtype):
        """
        Layout of a structured numpy dtype whose first member is 'key'.
        """
        dtype = np.dtype(dtype)
        if dtype.names is None or dtype.names[0] != "key":
            raise ValueError("Structured record dtype must start with a 'key' member")
        key_dtype = dtype.fields["key"][0]
        if key_dtype.shape != ():
            raise ValueError("The record key must be a scalar")

        payload = {}
        for name in dtype.names[1:]:
            sub = dtype.fields[name][0]
            if sub.shape == ():
                payload[name] = sub
            elif len(sub.shape) == 1:
                payload[name] = (sub.base, sub.shape[0])
            else:
                raise ValueError(f"Member '{name}' must be a scalar or a 1D vector")
        return cls(key_dtype, payload)

    def members(self):
        """(name, dtype, components) triples, key first."""
        return [("key", self.key, 1)] + [(name, dt, n) for name, (dt, n) in self.payload.items()]

    @property
    def numpy_dtype(self):
        fields = []
        for name, dt, n in self.members():
            fields.append((name, dt) if n == 1 else (name, dt, (n,)))
        return np.dtype(fields)

    @property
    def record_bytes(self):
        return self.numpy_dtype.itemsize

    def __eq__(self, other):
        return isinstance(other, RecordLayout) and self.members() == other.members()

    def __hash__(self):
        return hash(tuple((name, str(dt), n) for name, dt, n in self.members()))

    def __repr__(self):
        inner = ", ".join(f"{name}:{dt}" + (f"x{n}" if n > 1 else "") for name, dt, n in self.members())
        return f"RecordLayout({inner})"


# Particle of the SPH fluid solver, keyed by the index of its grid cell
PARTICLE_LAYOUT = RecordLayout(np.uint32, {
    "pos": (np.float32, 3),
    "density": np.float32,
    "velocity": (np.float32, 3),
    "forces": (np.float32, 3),
})

KEY_ONLY_LAYOUT = RecordLayout(np.float32)


@ti.data_oriented
class RecordBuffer:
    """
    Device array of `capacity` records laid out as one pooled field per member.

    Attributes:
        capacity: number of records the buffer holds
        layout: RecordLayout of the records
        key: Taichi field of the keys
        payload: tuple of the payload Taichi fields, in layout order
        payload_names: names matching `payload`
    """

    def __init__(self, capacity, layout=KEY_ONLY_LAYOUT):
        if capacity < 1:
            raise ValueError(f"Record buffer capacity must be positive, got {capacity}")

        self.capacity = int(capacity)
        self.layout = layout
        self.released = False

        self._pooled = []
        try:
            for name, dt, n in layout.members():
                self._pooled.append(pool.get_temp_field(ti_type(dt), (self.capacity,), components=n))
        except RuntimeError:
            for pfield in self._pooled:
                pfield.release()
            raise

        self.key = self._pooled[0].field
        self.payload = tuple(pfield.field for pfield in self._pooled[1:])
        self.payload_names = tuple(layout.payload.keys())

    @classmethod
    def allocate(cls, capacity, layout=KEY_ONLY_LAYOUT):
        return cls(capacity, layout)

    @classmethod
    def from_numpy(cls, array, layout=None):
        """
        Allocate a buffer sized to `array` and upload it.

        A plain 1D numeric array is treated as keys without payload. A
        structured array must match `layout` (inferred from its dtype when
        not given).
        """
        array = np.asarray(array)
        if array.ndim != 1:
            raise ValueError("Records must be a 1D array")

        if array.dtype.names is None:
            layout = layout or RecordLayout(array.dtype)
            structured = np.zeros(array.shape[0], dtype=layout.numpy_dtype)
            structured["key"] = array
            array = structured
        else:
            layout = layout or RecordLayout.from_numpy_dtype(array.dtype)

        records = cls(array.shape[0], layout)
        records.load(array)
        return records

    def _check_alive(self):
        if self.released:
            raise RuntimeError("Record buffer was released")

    def _resolve_count(self, count):
        if count is None:
            return self.capacity
        if isinstance(count, bool):
            raise ValueError(f"Record count must be an integer, got {count!r}")
        try:
            count = operator.index(count)
        except TypeError:
            raise ValueError(f"Record count must be an integer, got {count!r}") from None
        if count < 0 or count > self.capacity:
            raise ValueError(f"Record count {count} outside the buffer capacity 0..{self.capacity}")
        return count

    def load(self, array):
        """
        Copy a structured numpy array of exactly `capacity` records in.
        """
        self._check_alive()
        if array.shape != (self.capacity,):
            raise ValueError(f"Expected {self.capacity} records, got shape {array.shape}")
        if array.dtype.names is None or RecordLayout.from_numpy_dtype(array.dtype) != self.layout:
            raise ValueError(f"Array dtype {array.dtype} does not match {self.layout}")

        for (name, dt, n), pfield in zip(self.layout.members(), self._pooled):
            pfield.from_numpy(np.ascontiguousarray(array[name], dtype=dt))

    def to_numpy(self, count=None):
        """
        Structured numpy copy of the first `count` records (all by default).

        Raises:
            ValueError: count is negative or above the capacity
        """
        self._check_alive()
        count = self._resolve_count(count)
        out = np.empty(count, dtype=self.layout.numpy_dtype)
        for (name, dt, n), pfield in zip(self.layout.members(), self._pooled):
            out[name] = pfield.to_numpy()[:count]
        return out

    def keys(self, count=None):
        self._check_alive()
        count = self._resolve_count(count)
        return self.key.to_numpy()[:count]

    def release(self):
        """Give every member field back to the pool."""
        if self.released:
            return
        for pfield in self._pooled:
            pfield.release()
        self.released = True

    @ti.func
    def compare_and_swap(self, i, j):
        """
        Comparator primitive: with i < j, swap records i and j (every member)
        if key[i] > key[j].
        """
        a = self.key[i]
        b = self.key[j]
        if a > b:
            self.key[i] = b
            self.key[j] = a
            for f in ti.static(self.payload):
                tmp = f[i]
                f[i] = f[j]
                f[j] = tmp

    @ti.kernel
    def _count_descents(self, count: ti.i32, counter: ti.template()):
        for i in range(count - 1):
            if self.key[i] > self.key[i + 1]:
                ti.atomic_add(counter[None], 1)

    def count_descents(self, count=None):
        """
        Number of adjacent pairs (i, i+1), i + 1 < count, with key[i] > key[i+1].

        Zero means the first `count` records are sorted non-decreasing.
        """
        self._check_alive()
        count = self._resolve_count(count)
        with pool.temp_field(ti.i32, ()) as counter:
            counter.field[None] = 0
            self._count_descents(count, counter.field)
            return int(counter.field[None])

    def is_sorted(self, count=None):
        return self.count_descents(count) == 0

    def __len__(self):
        return self.capacity

    def __repr__(self):
        return f"RecordBuffer(capacity={self.capacity}, layout={self.layout})"
