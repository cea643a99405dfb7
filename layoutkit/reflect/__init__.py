"""Reflection of plain ctypes structures: arity, shape, offsets and access."""

from .access import FieldVisitor as FieldVisitor
from .access import get as get
from .access import set_field as set_field
from .access import value_of as value_of
from .access import visit as visit
from .traits import *
from .types import *
