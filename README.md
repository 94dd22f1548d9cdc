# polysubml

Building blocks for a compiler for PolySubML, a small ML-style language with
subtyping and polymorphism. The compiler emits JavaScript.

## Contents

- `polysubml.spans`: keeps source texts and spans into them, and renders
  error messages that quote the source with the span highlighted
  (`Span`, `SpanManager`, `SpanMaker`, `SpannedError`). `SpannedError` is an
  exception; `render(manager)` gives the full message with source context.
- `polysubml.syntax`: the syntax tree as dataclasses: expressions
  (`BinOpExpr`, `CallExpr`, `MatchExpr`, ...), patterns (`VarPattern`,
  `CasePattern`, `RecordPattern`), type expressions and statements.
  Identifiers are plain strings and a spanned value is a `(value, span)`
  tuple. Helpers: `make_tuple_expr`, `make_tuple_pattern`, `make_tuple_type`
  (tuples become records with fields `_0`, `_1`, ...), `make_join_ast` and
  `make_call` (which wraps the callee in an implicit `InstantiateUniExpr`).
- `polysubml.bound_pairs_set`: `BoundPairsSet`, a set of bound
  (`SourceLoc`, `SourceLoc`) pairs that can be flipped cheaply and shares its
  storage between copies; also `VarSpec`.
- `polysubml.reachability`: `Reachability`, a graph kept transitively closed
  as edges are added, with `save`, `revert` and `make_permanent` for rolling
  back changes. Node and edge data follow the `NodeData` and `EdgeData`
  protocols.
- `polysubml.js`: a small immutable JavaScript expression tree with builder
  functions (`lit`, `var`, `binop`, `call`, `func`, `obj`, `comma_list`, ...),
  precedence-aware printing (`Expr.to_source`) and removal of assignments to
  variables that are never read (`optimize`).
- `polysubml.codegen`: turns syntax trees into JavaScript expressions
  (`ModuleBuilder`, `compile_expr`, `compile_script`).
- `polysubml.js_executor`: runs compiled JavaScript under Node.js with a
  10-second timeout, optionally caching outputs on disk by a SHA-256 of the
  code (`JsExecutor`, `JsExecutionError`).

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Examples

Reporting an error against a piece of source text:

```python
from polysubml.spans import SpanManager, SpannedError

manager = SpanManager()
maker = manager.add_source("let x = 1 + true\n")
span = maker.span(12, 16)

error = SpannedError.with_span("TypeError: Value is not an int", span)
print(error.render(manager))
```

Building and printing JavaScript:

```python
from polysubml import js

expr = js.binop(js.lit("1n"), js.lit("2n"), js.Op.ADD)
print(expr.to_source())  # 1n+2n
```

Generating code from a syntax tree built by hand:

```python
from polysubml import codegen
from polysubml import syntax as ast
from polysubml.spans import SpanManager

span = SpanManager().add_source("").span(0, 0)
statements = [
    ast.LetDefStatement(
        ast.VarPattern("x", span),
        (ast.LiteralExpr(ast.Literal.INT, ("1", span)), span),
    ),
    ast.PrintlnStatement([(ast.VariableExpr("x"), span)]),
]
result = codegen.compile_script(codegen.ModuleBuilder(), statements)
print(result.to_source())  # p.println(1n), void 0
```

Array and dict expressions, import statements and type definitions cannot be
compiled; `compile_expr` and `compile_script` raise `ValueError` for them.

Running compiled code needs `node` on the `PATH`. The executor wraps the code
in a runtime script that you supply, which must define an `execute` function:

```python
from pathlib import Path
from polysubml.js_executor import JsExecutor

executor = JsExecutor(runtime=Path("runtime.js").read_text(), cache_dir=Path(".cache"))
output = executor.execute_js(result.to_source())
```

A failed or timed-out run raises `JsExecutionError`.

## What this package does not do

The package has no parser and no type checker: syntax trees must be built
directly from the classes in `polysubml.syntax`, and `compile_script` does
not check types before generating code. There is no command-line tool, and no
JavaScript runtime script is included; `JsExecutor` needs one to be passed in.