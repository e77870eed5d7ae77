"""
Taichi Field Pool Module

Pooling system for the device fields PyFastSort needs: record member arrays and
small scratch scalars. Fields are created with their own FieldsBuilder so that
each one can be destroyed independently, and are recycled by (dtype,
components, shape) key once released.

Supported fields:
- 0D fields: single scalar values (counters), accessed with [None]
- 1D scalar fields: one value per record (keys, densities, ...)
- 1D vector fields: one small vector per record (positions, velocities, ...)

"""

import taichi as ti
from typing import Tuple, Any


def _normalise_shape(shape):
    if isinstance(shape, int):
        shape = (shape,) if shape > 0 else ()
    elif not isinstance(shape, tuple):
        shape = tuple(shape) if hasattr(shape, '__iter__') else (shape,)
    if not shape or (len(shape) == 1 and shape[0] == 0):
        shape = ()
    return shape


class PooledField:
    """
    Pooled wrapper around one Taichi field.

    Attributes:
        id: Unique field identifier
        field: Underlying Taichi field
        in_use: Current usage status
        dtype: Scalar data type of the field (or of its vector components)
        components: 1 for scalar fields, n for n-vector fields
        shape: Field dimensions (empty tuple for 0D scalars)
        snodetree: Finalized structure, destroyed to free device memory
    """

    _next_id = 0

    def __init__(self, dtype: Any, shape: Tuple[int, ...], components: int = 1):
        """
        Allocate a new field on the device.

        Args:
            dtype: Taichi scalar type (ti.f32, ti.u32, ...)
            shape: () for a scalar, (n,) for a 1D field
            components: vector length per element, 1 for a plain scalar field

        Raises:
            ValueError: unsupported dimensionality
            RuntimeError: the device refused the allocation
        """
        shape = _normalise_shape(shape)
        if len(shape) > 1:
            raise ValueError(f"Unsupported field dimensionality: {len(shape)}D. Only 0D and 1D fields supported.")
        if components > 1 and len(shape) == 0:
            raise ValueError("Vector fields must be 1D")

        PooledField._next_id += 1
        self.id = PooledField._next_id
        self.in_use = False
        self.dtype = dtype
        self.components = components
        self.shape = shape

        try:
            self.fb = ti.FieldsBuilder()
            if components > 1:
                self.field = ti.Vector.field(components, dtype)
            else:
                self.field = ti.field(dtype)

            if len(shape) == 0:
                self.fb.place(self.field)
            else:
                self.fb.dense(ti.i, shape).place(self.field)
            self.snodetree = self.fb.finalize()
        except Exception as e:
            raise RuntimeError(
                f"Unable to allocate field dtype={dtype} components={components} shape={shape}"
            ) from e

    def acquire(self):
        self.in_use = True

    def release(self):
        """Mark the field as available for reuse. The memory is kept."""
        self.in_use = False

    def destroy(self):
        """Free the device memory behind this field."""
        if getattr(self, 'snodetree', None) is not None:
            self.snodetree.destroy()
            self.snodetree = None

    def to_numpy(self):
        return self.field.to_numpy()

    def from_numpy(self, val):
        return self.field.from_numpy(val)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def __str__(self):
        return (f"Pooled field id:{self.id} - in_use:{self.in_use} - dtype:{self.dtype}"
                f" - components:{self.components} - shape:{self.shape}")


class FieldPool:
    """
    Pool manager for PooledField objects.

    Fields are grouped by (dtype, components, shape); a request returns the
    first released field of the matching group or allocates a new one.

    Usage:
        pool = FieldPool()
        keys = pool.get(ti.f32, (4096,))
        pos = pool.get(ti.f32, (4096,), components=3)
        counter = pool.get(ti.i32, ())
        ...
        pool.release(keys)
    """

    def __init__(self):
        self._pools = {}  # (dtype, components, shape) -> [PooledField]

    def get(self, dtype: Any, shape: Tuple[int, ...], components: int = 1) -> PooledField:
        """
        Get an available PooledField or create a new one.

        The returned field is marked as in use.
        """
        shape = _normalise_shape(shape)
        key = (dtype, components, shape)
        pool = self._pools.setdefault(key, [])

        for pfield in pool:
            if not pfield.in_use:
                pfield.acquire()
                return pfield

        pfield = PooledField(dtype, shape, components)
        pool.append(pfield)
        pfield.acquire()
        return pfield

    def release(self, pfield: PooledField):
        pfield.release()

    def preallocate(self, dtype: Any, shape: Tuple[int, ...], count: int, components: int = 1):
        """
        Make sure at least `count` fields of the given kind exist in the pool.
        """
        shape = _normalise_shape(shape)
        key = (dtype, components, shape)
        pool = self._pools.setdefault(key, [])
        for _ in range(max(0, count - len(pool))):
            pool.append(PooledField(dtype, shape, components))

    def clear_unused(self):
        """Destroy every released field and drop it from the pool."""
        for pool in self._pools.values():
            for pfield in pool[:]:
                if not pfield.in_use:
                    pfield.destroy()
                    pool.remove(pfield)

    def clear_all(self):
        """
        Destroy every field, including the ones still in use.

        Only safe once nothing holds a reference to a pooled field anymore,
        typically right before ti.reset().
        """
        for pool in self._pools.values():
            for pfield in pool:
                pfield.destroy()
        self._pools.clear()

    def stats(self) -> dict:
        """
        Returns:
            dict: total, in_use and available field counts
        """
        total = sum(len(pool) for pool in self._pools.values())
        in_use = sum(1 for pool in self._pools.values() for pf in pool if pf.in_use)
        return {"total": total, "in_use": in_use, "available": total - in_use}


# Global pool instance
fieldpool = FieldPool()


def get_temp_field(dtype: Any, shape: Tuple[int, ...], components: int = 1) -> PooledField:
    """Get a field from the global pool."""
    return fieldpool.get(dtype, shape, components)


def release_temp_field(pfield: PooledField):
    """Return a field to the global pool."""
    fieldpool.release(pfield)


def pool_stats() -> dict:
    return fieldpool.stats()


def clear_pool():
    """Destroy the released fields of the global pool."""
    fieldpool.clear_unused()


def temp_field(dtype: Any, shape: Tuple[int, ...], components: int = 1) -> PooledField:
    """
    Get a field from the global pool, to be used as a context manager:

    with temp_field(ti.i32, ()) as counter:
        counter.field[None] = 0
        some_kernel(counter.field)
    # released here
    """
    return fieldpool.get(dtype, shape, components)
