"""Interface extraction from Terraform module sources.

The extractor reads the `*.tf` files of a module with `python-hcl2`,
normalizes the parsed document and produces a `ModuleInterface`: one
flat record per input, output, local and resource, plus the branches
driven by inputs.

`python-hcl2` releases differ in how they render expressions: older
ones wrap them in `${...}`, newer ones keep string literals quoted and
may add `__`-prefixed metadata keys. Both conventions are accepted.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import hcl2

from tfcases.errors import ExpressionError, InterfaceError, TfCasesError, UnsupportedExpression
from tfcases.expressions import Evaluator, conditions, is_boolean, parse_expression, references
from tfcases.expressions.nodes import Literal, Node, ObjectExpr, TupleExpr
from tfcases.names import slugify, unique_name
from tfcases.schema import (
    Branch,
    CoverageGap,
    Dependent,
    InputDeclaration,
    LocalDeclaration,
    ModuleInterface,
    OutputDeclaration,
    ResourceDeclaration,
    Validation,
    infer_type,
    parse_type,
)
from tfcases.values import is_unknown, normalize

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from tfcases.extensions import Function
    from tfcases.values import Value

#: Reference roots known during a plan or relative to an iteration.
KNOWN_ROOTS = ('path', 'terraform', 'count', 'each', 'self')

#: Resource meta-arguments that are not inspected for branches.
META_ARGUMENTS = ('count', 'for_each', 'provider', 'depends_on', 'lifecycle', 'provisioner', 'connection')

logger = logging.getLogger(__name__)

type Document = dict[str, Any]


def _is_meta(key: str) -> bool:
    """Check whether a key is parser metadata."""
    return key.startswith('__') and key.endswith('__')


def _label(key: str) -> str:
    """Strip quotes from a block label."""
    if len(key) >= 2 and key[0] == key[-1] == '"':  # noqa: PLR2004
        return key[1:-1]
    return key


def _as_template(raw: str) -> str:
    """Quote a raw string holding interpolations as a template literal."""
    out, index, depth = ['"'], 0, 0
    escapes = {'"': '\\"', '\\': '\\\\', '\n': '\\n'}

    while index < len(raw):
        if depth == 0 and raw.startswith('${', index):
            out.append('${')
            depth, index = 1, index + 2
            continue

        char = raw[index]
        if not depth:
            out.append(escapes.get(char, char))
            index += 1
            continue

        if char == '"':
            end = index + 1
            while end < len(raw) and raw[end] != '"':
                end += 2 if raw[end] == '\\' else 1
            out.append(raw[index:end + 1])
            index = end + 1
            continue

        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
        out.append(char)
        index += 1

    out.append('"')

    return ''.join(out)


def to_expression(raw: Any) -> Node:  # noqa: ANN401
    """Convert a parsed HCL attribute value into an expression tree.

    Args:
        raw: Value produced by `python-hcl2` for an attribute.

    Returns:
        Expression syntax tree.

    Raises:
        ExpressionError: If an embedded expression is invalid.
        UnsupportedExpression: If it uses unsupported syntax.
    """
    if raw is None or isinstance(raw, (bool, int, float)):
        return Literal(raw)

    if isinstance(raw, str):
        if len(raw) >= 2 and raw[0] == raw[-1] == '"':  # noqa: PLR2004
            return parse_expression(raw)
        if '${' in raw:
            return parse_expression(_as_template(raw))
        return Literal(raw)

    if isinstance(raw, list):
        return TupleExpr(tuple(to_expression(item) for item in raw))

    if isinstance(raw, dict):
        return ObjectExpr(tuple(
            (Literal(_label(key)), to_expression(value))
            for key, value in raw.items()
            if not _is_meta(key)
        ))

    raise ExpressionError(f'Unsupported attribute value {raw!r}')


def _blocks(document: 'Mapping[str, Any]', key: str) -> list[dict[str, Any]]:
    """Return the list of blocks of one type from a parsed document."""
    value = document.get(key) or []
    if isinstance(value, dict):
        return [value]
    return [item for item in value if isinstance(item, dict)]


def _labelled(document: 'Mapping[str, Any]', key: str) -> 'Iterator[tuple[str, dict[str, Any]]]':
    """Iterate over `(label, body)` pairs of single-label blocks."""
    for block in _blocks(document, key):
        for label, body in block.items():
            if not _is_meta(label) and isinstance(body, dict):
                yield _label(label), body


def _flag(raw: Any, default: bool) -> bool:  # noqa: ANN401, FBT001
    """Read a boolean block argument."""
    if raw is None:
        return default

    node = to_expression(raw)
    if isinstance(node, Literal) and isinstance(node.value, bool):
        return node.value

    raise ExpressionError(f'Expected a boolean literal, got {raw!r}')


def _text(raw: Any) -> str | None:  # noqa: ANN401
    """Read a string block argument such as a description."""
    if raw is None:
        return None

    node = to_expression(raw)
    if isinstance(node, Literal) and isinstance(node.value, str):
        return node.value

    return node.unparse()


class DependencyResolver:
    """Computes inputs and plan-unknown references of expressions.

    References to locals are expanded transitively and memoized; a
    cycle between locals is an extraction error.
    """

    def __init__(self, locals_: 'Mapping[str, Node]') -> None:
        self.locals = locals_
        self._cache: dict[str, tuple[list[str], list[str]]] = {}
        self._stack: list[str] = []

    def resolve(self, node: Node) -> tuple[list[str], list[str]]:
        """Return `(inputs, unknowns)` of an expression, in order of appearance.

        Raises:
            InterfaceError: On undeclared locals and cycles between locals.
        """
        inputs: list[str] = []
        unknowns: list[str] = []

        def extend(target: list[str], items: 'list[str]') -> None:
            target.extend(item for item in items if item not in target)

        for ref in references(node):
            root = ref[0]
            if root == 'var' and len(ref) > 1:
                extend(inputs, [ref[1]])
            elif root == 'local' and len(ref) > 1:
                local_inputs, local_unknowns = self.resolve_local(ref[1])
                extend(inputs, local_inputs)
                extend(unknowns, local_unknowns)
            elif root in KNOWN_ROOTS:
                continue
            elif root == 'data' and len(ref) > 2:  # noqa: PLR2004
                extend(unknowns, [f'data.{ref[1]}.{ref[2]}'])
            elif len(ref) > 1:
                extend(unknowns, [f'{ref[0]}.{ref[1]}'])
            else:
                extend(unknowns, [root])

        return inputs, unknowns

    def resolve_local(self, name: str) -> tuple[list[str], list[str]]:
        """Return `(inputs, unknowns)` of a local value."""
        if name in self._cache:
            return self._cache[name]

        if name not in self.locals:
            raise InterfaceError(f'Reference to undeclared local value {name!r}')

        if name in self._stack:
            chain = ' -> '.join(f'local.{item}' for item in (*self._stack, name))
            raise InterfaceError(f'Local values form a cycle: {chain}')

        self._stack.append(name)
        try:
            result = self.resolve(self.locals[name])
        finally:
            self._stack.pop()

        self._cache[name] = result

        return result

    def dependent(self, node: Node) -> dict[str, Any]:
        """Build the fields of a `Dependent` record for an expression."""
        inputs, unknowns = self.resolve(node)
        return {
            'expression': node.unparse(),
            'inputs': tuple(inputs),
            'unknowns': tuple(unknowns),
        }


class InterfaceExtractor:
    """Reads a module's declarations into a `ModuleInterface`.

    Extraction is a pure transformation of the module sources: it never
    aborts on an unresolvable type, which is flagged as `unknown`
    instead, and it reports branches that only depend on values known
    after apply as coverage gaps.
    """

    def __init__(self, functions: 'Mapping[str, Function]') -> None:
        """Initialize the extractor.

        Args:
            functions: Function definitions used to evaluate defaults.
        """
        self.functions = functions

    def extract(self, path: Path | str) -> ModuleInterface:
        """Extract the interface of a module directory.

        Args:
            path: Module directory containing `*.tf` files.

        Returns:
            The module interface.

        Raises:
            InterfaceError: If the directory holds no readable module.
        """
        path = Path(path)
        if not path.is_dir():
            raise InterfaceError(f'Module directory {path.as_posix()!r} does not exist')

        files = sorted(path.glob('*.tf'))
        if not files:
            raise InterfaceError(f'Module directory {path.as_posix()!r} contains no Terraform files')

        document: Document = {}
        for filename in files:
            logger.debug('Parsing %s', filename)
            try:
                with filename.open('rt', encoding='utf-8') as content:
                    parsed = hcl2.load(content)
            except OSError as base:
                raise InterfaceError(f'Can not read {filename.as_posix()!r}') from base
            except Exception as base:
                raise InterfaceError.from_hcl_error(filename.as_posix(), base) from base

            for key, blocks in parsed.items():
                if _is_meta(key):
                    continue
                document.setdefault(key, []).extend(blocks if isinstance(blocks, list) else [blocks])

        return self.extract_document(document, path=path.as_posix())

    def extract_document(self, document: Document, path: str = '.') -> ModuleInterface:
        """Extract the interface from a parsed module document.

        Args:
            document: Mapping in the form produced by `hcl2.load`, with
                the blocks of all module files merged.
            path: Module path recorded in the interface.

        Returns:
            The module interface.

        Raises:
            InterfaceError: On invalid declarations, duplicate names,
                undeclared locals or cycles between locals.
        """
        try:
            local_nodes = self._locals(document)
            resolver = DependencyResolver(local_nodes)

            inputs = self._inputs(document)
            locals_ = tuple(
                LocalDeclaration(name=name, **resolver.dependent(node))
                for name, node in local_nodes.items()
            )
            outputs = self._outputs(document, resolver)
            resources, bodies = self._resources(document, resolver)

        except TfCasesError as base:
            if isinstance(base, InterfaceError):
                raise
            raise InterfaceError(f'Invalid module declaration: {base.message}') from base

        branches, gaps = self._branches(local_nodes, outputs, resources, bodies, resolver)

        declared = {item.name for item in inputs}
        for item in (*locals_, *outputs, *branches):
            if undeclared := [name for name in item.inputs if name not in declared]:
                raise InterfaceError(f'Reference to undeclared input variable {undeclared[0]!r}')

        logger.info(
            'Extracted %d inputs, %d outputs, %d locals, %d branches from %s',
            len(inputs), len(outputs), len(locals_), len(branches), path,
        )

        return ModuleInterface(
            path=path,
            inputs=inputs,
            outputs=outputs,
            locals=locals_,
            resources=resources,
            branches=branches,
            gaps=gaps,
        )

    def _inputs(self, document: Document) -> tuple[InputDeclaration, ...]:
        """Build input records from `variable` blocks."""
        inputs: dict[str, InputDeclaration] = {}

        for name, body in _labelled(document, 'variable'):
            if name in inputs:
                raise InterfaceError(f'Duplicate input variable {name!r}')

            type_source = None
            if 'type' in body:
                type_source = to_expression(body['type']).unparse()

            has_default = 'default' in body
            default = self._default(name, body['default']) if has_default else None

            if type_source is not None:
                spec = parse_type(type_source)
            elif has_default and default is not None:
                spec = infer_type(default)
            else:
                spec = parse_type(None)

            if spec.kind == 'unknown':
                logger.warning('Input %r has an unresolvable type %r', name, type_source)

            inputs[name] = InputDeclaration(
                name=name,
                type_source=type_source,
                type=spec,
                has_default=has_default,
                default=default,
                nullable=_flag(body.get('nullable'), default=True),
                sensitive=_flag(body.get('sensitive'), default=False),
                description=_text(body.get('description')),
                validations=tuple(
                    Validation(
                        condition=to_expression(rule['condition']).unparse(),
                        error_message=_text(rule.get('error_message')),
                    )
                    for rule in _blocks(body, 'validation')
                    if 'condition' in rule
                ),
            )

        return tuple(inputs.values())

    def _default(self, name: str, raw: Any) -> 'Value':  # noqa: ANN401
        """Evaluate the default value of an input."""
        try:
            value = Evaluator(self.functions).evaluate(to_expression(raw))
        except (ExpressionError, UnsupportedExpression) as base:
            raise InterfaceError(f'Invalid default value of input {name!r}') from base

        if is_unknown(value):
            raise InterfaceError(f'Default value of input {name!r} is not a constant')

        return normalize(value)

    @staticmethod
    def _locals(document: Document) -> dict[str, Node]:
        """Collect local value expressions from `locals` blocks."""
        local_nodes: dict[str, Node] = {}

        for block in _blocks(document, 'locals'):
            for name, raw in block.items():
                if _is_meta(name):
                    continue
                if name in local_nodes:
                    raise InterfaceError(f'Duplicate local value {name!r}')
                local_nodes[name] = to_expression(raw)

        return local_nodes

    @staticmethod
    def _outputs(document: Document,
                 resolver: DependencyResolver) -> tuple[OutputDeclaration, ...]:
        """Build output records from `output` blocks."""
        outputs: dict[str, OutputDeclaration] = {}

        for name, body in _labelled(document, 'output'):
            if name in outputs:
                raise InterfaceError(f'Duplicate output {name!r}')
            if 'value' not in body:
                raise InterfaceError(f'Output {name!r} has no value')

            outputs[name] = OutputDeclaration(
                name=name,
                sensitive=_flag(body.get('sensitive'), default=False),
                description=_text(body.get('description')),
                **resolver.dependent(to_expression(body['value'])),
            )

        return tuple(outputs.values())

    @staticmethod
    def _resources(document: Document, resolver: DependencyResolver) -> tuple[
        tuple[ResourceDeclaration, ...],
        dict[str, dict[str, Any]],
    ]:
        """Build resource records from `resource` and `data` blocks."""
        resources: list[ResourceDeclaration] = []
        bodies: dict[str, dict[str, Any]] = {}

        for key, mode, prefix in (('resource', 'managed', ''), ('data', 'data', 'data.')):
            for block in _blocks(document, key):
                for type_label, named in block.items():
                    if _is_meta(type_label) or not isinstance(named, dict):
                        continue
                    for name_label, body in named.items():
                        if _is_meta(name_label) or not isinstance(body, dict):
                            continue
                        address = f'{prefix}{_label(type_label)}.{_label(name_label)}'
                        gates = {
                            gate: Dependent(**resolver.dependent(to_expression(body[gate])))
                            for gate in ('count', 'for_each')
                            if gate in body
                        }
                        resources.append(ResourceDeclaration(address=address, mode=mode, **gates))
                        bodies[address] = body

        return tuple(resources), bodies

    @staticmethod
    def _branches(local_nodes: dict[str, Node],
                  outputs: tuple[OutputDeclaration, ...],
                  resources: tuple[ResourceDeclaration, ...],
                  bodies: dict[str, dict[str, Any]],
                  resolver: DependencyResolver) -> tuple[tuple[Branch, ...], tuple[CoverageGap, ...]]:
        """Find the branches of the module.

        Sources, in order: locals, outputs, resource count gates and
        other resource arguments. Branches are deduplicated by their
        condition text; the first origin wins.
        """
        candidates: list[tuple[str, str, str, Node]] = []

        for name, node in local_nodes.items():
            if is_boolean(node):
                candidates.append((f'local.{name}', name, 'boolean', node))
            candidates.extend((f'local.{name}', name, 'conditional', item) for item in conditions(node))

        for output in outputs:
            if is_boolean(output.node):
                candidates.append((output.address, output.name, 'boolean', output.node))
            candidates.extend(
                (output.address, output.name, 'conditional', item)
                for item in conditions(output.node)
            )

        for resource in resources:
            if resource.count is not None:
                candidates.extend(
                    (f'{resource.address}.count', resource.address, 'count', item)
                    for item in conditions(resource.count.node)
                )
            for argument, raw in bodies[resource.address].items():
                if argument in META_ARGUMENTS or _is_meta(argument):
                    continue
                try:
                    node = to_expression(raw)
                except TfCasesError:
                    logger.debug('Skipping unparseable argument %s.%s', resource.address, argument)
                    continue
                candidates.extend(
                    (f'{resource.address}.{argument}', resource.address, 'conditional', item)
                    for item in conditions(node)
                )

        branches: list[Branch] = []
        gaps: list[CoverageGap] = []
        seen: set[str] = set()
        taken: set[str] = set()

        for origin, label, kind, node in candidates:
            condition = node.unparse()
            if condition in seen:
                continue
            seen.add(condition)

            fields = resolver.dependent(node)
            if fields['unknowns'] and not fields['inputs']:
                gaps.append(CoverageGap(
                    kind='branch',
                    target=origin,
                    reason=(
                        f'condition {condition} depends only on values known after apply: '
                        f'{", ".join(fields["unknowns"])}'
                    ),
                ))
                continue
            if not fields['inputs']:
                logger.debug('Skipping constant condition %s in %s', condition, origin)
                continue

            branches.append(Branch(
                id=origin,
                name=unique_name(slugify(label), taken),
                kind=kind,
                **fields,
            ))

        return tuple(branches), tuple(gaps)

