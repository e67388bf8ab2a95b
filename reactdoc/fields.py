"""
Observable field declarations for reactive entries.

Fields are declared on the class body, either as stored values:

    class Contact(ReactiveEntry):
        gender = reactive()

or backed by custom accessors:

    class Contact(ReactiveEntry):
        @reactive_property
        def age(self):
            return self._age

        @age.setter
        def age(self, value):
            self._age = value

Every write goes through the owning entry's notifying setter, which compares
the new value to the current one and publishes an update when they differ.
A property whose getter raises AttributeError counts as unset, so its first
write always goes through and snapshots show the field default until then.
The set of observable fields is built once per class, at class creation.
"""

from typing import Any
from typing import Callable
from typing import Optional


UNSET = object()
"""Marker for a property field whose backing state was never set."""


class ReactiveField(object):
    """Descriptor for a single observable field."""

    def __init__(
        self,
        default: Any = None,
        fget: Optional[Callable[[Any], Any]] = None,
        fset: Optional[Callable[[Any, Any], None]] = None,
        doc: Optional[str] = None,
    ) -> None:
        self.default = default
        self.fget = fget
        self.fset = fset
        self.name: Optional[str] = None
        if doc is None and fget is not None:
            doc = fget.__doc__
        self.__doc__ = doc

    def __repr__(self) -> str:
        return f"<ReactiveField {self.name!r}>"

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        return self.read(instance)

    def __set__(self, instance: Any, value: Any) -> None:
        instance._set_field(self.name, value)

    def setter(self, fset: Callable[[Any, Any], None]) -> "ReactiveField":
        """Return a copy of this field using fset as its write accessor."""
        return type(self)(self.default, fget=self.fget, fset=fset, doc=self.__doc__)

    @property
    def is_property(self) -> bool:
        return self.fget is not None

    def read(self, instance: Any) -> Any:
        """Current value on instance."""
        if self.fget is not None:
            return self.fget(instance)
        return instance._field_values.get(self.name, self.default)

    def current(self, instance: Any, missing: Any = UNSET) -> Any:
        """
        Current value on instance, or missing while a property getter finds
        its backing attribute unset.
        """
        try:
            return self.read(instance)
        except AttributeError:
            if not self.is_property:
                raise
            return missing

    def write(self, instance: Any, value: Any) -> None:
        """Store value on instance without any notification."""
        if self.fset is not None:
            self.fset(instance, value)
        else:
            instance._field_values[self.name] = value


def reactive(default: Any = None) -> ReactiveField:
    """Declare a stored observable field."""
    return ReactiveField(default)


def reactive_property(fget: Callable[[Any], Any]) -> ReactiveField:
    """Declare an observable field backed by a getter; add the setter with .setter."""
    return ReactiveField(fget=fget)


def collect_fields(cls: type) -> dict[str, ReactiveField]:
    """
    Observable fields of cls in declaration order, base classes first.
    A subclass redefining a field keeps the base class position.
    """
    found: dict[str, ReactiveField] = {}
    for klass in reversed(cls.__mro__):
        for name, value in vars(klass).items():
            if isinstance(value, ReactiveField):
                found[name] = value
            elif name in found:
                # Shadowed by a plain attribute; no longer observable.
                del found[name]
    return found
