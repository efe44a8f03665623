"""Prepare schemas for validation: checks, URI resolution and references.

Before a schema can validate instances it must be resolved with
:func:`resolve`. Resolution checks that the schema forms a tree, compiles its
regular expressions, works out the base URI of every subschema, records
anchors, and replaces every ``$ref`` and ``$dynamicRef`` with the schema it
refers to. Schemas outside the root are obtained from a loader.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple, Optional
from urllib.parse import SplitResult, unquote, urlsplit, urlunsplit

from .instance import apply_defaults as _apply_defaults
from .json_pointer import dereference_json_pointer, escape_segment
from .schema import SUBSCHEMA_FIELDS, FieldKind, Schema
from .util import SchemaError
from .validate import DRAFT_2020_12
from .validate import validate as _validate
from .validate import validate_defaults as _validate_defaults

Loader = Callable[[str], Schema]


class _AnchorInfo(NamedTuple):
    """The subschema an anchor names, and whether it is a $dynamicAnchor."""

    schema: Schema
    dynamic: bool


@dataclass
class ResolveOptions:
    """Options for :func:`resolve`.

    ``base_uri`` is the URI the root is resolved against; if the result is
    not absolute, the schema cannot hold relative references to other
    documents. ``loader`` is called with the URI of a schema that is referred
    to but not under the root; without one, such references are errors.
    ``validate_defaults`` checks every ``default`` against its schema.
    """

    base_uri: str = ""
    loader: Optional[Loader] = None
    validate_defaults: bool = False


class Resolved:
    """A schema whose references are resolved, ready to validate instances."""

    def __init__(self, root: Schema, resolved_uris: dict[str, Schema]) -> None:
        self._root = root
        self._resolved_uris = resolved_uris

    @property
    def schema(self) -> Schema:
        """The schema that was resolved. It must not be modified."""
        return self._root

    def validate(self, instance: Any) -> None:
        """Validate a JSON value, raising ValidationError if it is invalid."""
        _validate(instance, self._root)

    def apply_defaults(self, instance: Any) -> None:
        """Fill in the defaults of the root's optional properties, in place."""
        _apply_defaults(instance, self._root)

    def __repr__(self) -> str:
        return f"Resolved({self._root})"


def _parse(uri: str) -> SplitResult:
    try:
        return urlsplit(uri)
    except ValueError as exc:
        raise SchemaError(f"parsing URI {json.dumps(uri)}: {exc}") from exc


def _unsplit(parts: SplitResult) -> str:
    return urlunsplit(parts)


def _resolve_path(base: str, ref: str) -> str:
    if ref == "":
        full = base
    elif not ref.startswith("/"):
        full = base[: base.rfind("/") + 1] + ref
    else:
        full = ref
    if full == "":
        return ""
    segments = (full[1:] if full.startswith("/") else full).split("/")
    out: list[str] = []
    for seg in segments:
        if seg == ".":
            continue
        if seg == "..":
            if out:
                out.pop()
            continue
        out.append(seg)
    result = "/" + "/".join(out)
    if segments[-1] in (".", "..") and not result.endswith("/"):
        result += "/"
    return result


def _resolve_reference(base: SplitResult, ref: SplitResult) -> SplitResult:
    """Resolve ``ref`` against ``base`` as an absolute or relative reference."""
    if ref.scheme or ref.netloc:
        scheme = ref.scheme or base.scheme
        path = ref.path
        if ref.netloc or path.startswith("/"):
            path = _resolve_path(path, "")
        return SplitResult(scheme, ref.netloc, path, ref.query, ref.fragment)
    query, fragment = ref.query, ref.fragment
    if not ref.path and not ref.query:
        query = base.query
        if not ref.fragment:
            fragment = base.fragment
    path = _resolve_path(base.path, ref.path)
    return SplitResult(base.scheme, base.netloc, path, query, fragment)


def check_structure(root: Schema) -> None:
    """Check that root and its subschemas form a tree, and record their paths.

    The root's path is "root"; every other schema's path is its JSON Pointer
    from the root. Raises SchemaError for a missing subschema or a schema
    that appears more than once.
    """

    def check(schema: Optional[Schema], path: str) -> None:
        where = path or "root"
        if schema is None:
            raise SchemaError(f"jsonschema: schema at {where} is nil")
        if schema._path:
            raise SchemaError(
                f"jsonschema: schemas at {root} do not form a tree; "
                f"{schema._path} appears more than once (also at {where})"
            )
        schema._path = where
        for spec in SUBSCHEMA_FIELDS:
            value = getattr(schema, spec.attr)
            if value is None:
                continue
            prefix = f"{path}/{spec.json_name}"
            if spec.kind is FieldKind.SCHEMA:
                check(value, prefix)
            elif spec.kind is FieldKind.SCHEMA_LIST:
                for i, child in enumerate(value):
                    check(child, f"{prefix}/{i}")
            else:
                for key in sorted(value):
                    check(value[key], f"{prefix}/{escape_segment(key)}")

    check(root, "")


def _check_local(schema: Schema, errors: list[str]) -> None:
    """Check one schema by itself, compiling its regular expressions."""

    def add(msg: str) -> None:
        errors.append(f"jsonschema.Schema: {schema}: {msg}")

    try:
        schema.basic_checks()
    except SchemaError as exc:
        errors.append(str(exc))
        return

    # $vocabulary is kept for round trips but only the 2020-12 meta-schema's is honoured.
    if schema.vocabulary is not None and schema.schema != DRAFT_2020_12:
        add("cannot validate a schema with $vocabulary")

    if schema.pattern:
        try:
            schema._pattern = re.compile(schema.pattern)
        except re.error as exc:
            add(f"pattern: error parsing regexp: {exc}")
    if schema.pattern_properties:
        compiled: dict[Any, Schema] = {}
        for source, sub in schema.pattern_properties.items():
            try:
                compiled[re.compile(source)] = sub
            except re.error as exc:
                add(f"patternProperties[{json.dumps(source)}]: error parsing regexp: {exc}")
        schema._pattern_properties = compiled

    if schema.required:
        schema._is_required = set(schema.required)


def _check(root: Schema) -> None:
    check_structure(root)
    errors: list[str] = []
    for schema in root.all():
        _check_local(schema, errors)
    if errors:
        raise SchemaError("\n".join(errors))


def resolve_uris(root: Schema, base_uri: str) -> dict[str, Schema]:
    """Assign base URIs and anchors to root and its subschemas.

    A schema with an ``$id`` gets that id resolved against its parent's base
    as its own base; other schemas inherit their parent's. Anchors are
    recorded on the base schema that scopes them. Returns a map from every
    base URI (and ``base_uri`` itself) to its schema.
    """
    resolved: dict[str, Schema] = {}

    def visit(schema: Schema, base: Schema) -> None:
        if schema.id:
            id_parts = _parse(schema.id)
            if id_parts.fragment:
                raise SchemaError(f"$id {schema.id} must not have a fragment")
            uri = _unsplit(_resolve_reference(_parse(base._uri or ""), id_parts))
            schema._uri = uri
            if not _parse(uri).scheme:
                raise SchemaError(
                    f"$id {schema.id} does not resolve to an absolute URI "
                    f"(base is {base._uri})"
                )
            resolved[uri] = schema
            base = schema
        schema._base = base

        for anchor, dynamic in ((schema.anchor, False), (schema.dynamic_anchor, True)):
            if not anchor:
                continue
            if base._anchors is None:
                base._anchors = {}
            # The first definition of an anchor within a base is kept.
            base._anchors.setdefault(anchor, _AnchorInfo(schema, dynamic))

        for child in schema.children():
            visit(child, base)

    root._uri = base_uri
    resolved[base_uri] = root
    visit(root, root)
    return resolved


def _no_loader(uri: str) -> Schema:
    raise SchemaError("cannot resolve remote schemas: no loader passed to Schema.Resolve")


class _Resolver:
    """State for one resolution, including the cache of loaded schemas."""

    def __init__(self, options: ResolveOptions) -> None:
        self.loader: Loader = options.loader or _no_loader
        # Loaded schemas by URI, so each is loaded once and ref cycles end.
        self.loaded: dict[str, Resolved] = {}

    def resolve(self, schema: Schema, base_uri: str) -> Resolved:
        if _parse(base_uri).fragment:
            raise SchemaError(f"base URI {base_uri} must not have a fragment")
        _check(schema)
        rs = Resolved(schema, resolve_uris(schema, base_uri))
        # Register before resolving refs, or cycles would recurse forever.
        self.loaded[base_uri] = rs
        self.loaded[schema._uri or ""] = rs
        self._resolve_refs(rs)
        return rs

    def _resolve_refs(self, rs: Resolved) -> None:
        for schema in rs.schema.all():
            if schema.ref:
                target, _ = self._resolve_ref(rs, schema, schema.ref)
                schema._resolved_ref = target
            if schema.dynamic_ref:
                target, fragment = self._resolve_ref(rs, schema, schema.dynamic_ref)
                if fragment:
                    # Resolved against the dynamic scope while validating.
                    schema._dynamic_ref_anchor = fragment
                else:
                    schema._resolved_dynamic_ref = target

    def _load(self, uri: str) -> Schema:
        try:
            loaded = self.loader(uri)
        except Exception as exc:
            raise SchemaError(f"loading {uri}: {exc}") from exc
        if loaded is None:
            raise SchemaError(f"loading {uri}: loader returned no schema")
        return loaded

    def _resolve_ref(self, rs: Resolved, schema: Schema, ref: str) -> tuple[Schema, str]:
        base = schema._base
        base_uri = base._uri if base is not None and base._uri is not None else ""
        full = _resolve_reference(_parse(base_uri), _parse(ref))
        key = _unsplit(full._replace(fragment=""))

        referenced = rs._resolved_uris.get(key)
        if referenced is None:
            cached = self.loaded.get(key)
            if cached is not None:
                referenced = cached.schema
            else:
                referenced = self.resolve(self._load(key), key).schema

        fragment = unquote(full.fragment)
        # A fragment is a JSON Pointer (empty or starting with '/') or an anchor.
        if fragment and not fragment.startswith("/"):
            info = (referenced._anchors or {}).get(fragment)
            if info is None:
                raise SchemaError(f"no anchor {json.dumps(fragment)} in {schema}")
            return info.schema, fragment if info.dynamic else ""
        return dereference_json_pointer(referenced, fragment), ""


def resolve(schema: Schema, options: Optional[ResolveOptions] = None) -> Resolved:
    """Resolve a schema so that it can validate instances.

    Raises SchemaError if the schema was already resolved, is malformed,
    refers to something that cannot be found, or (with ``validate_defaults``)
    has a default that its schema rejects.
    """
    if schema._path:
        raise SchemaError(f"jsonschema: Resolve: {schema} already resolved")
    opts = options or ResolveOptions()
    base_uri = _unsplit(_parse(opts.base_uri)) if opts.base_uri else ""
    rs = _Resolver(opts).resolve(schema, base_uri)
    if opts.validate_defaults:
        _validate_defaults(rs.schema)
    return rs