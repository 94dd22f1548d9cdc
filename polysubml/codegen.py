"""Code generation from the syntax tree to JavaScript expressions."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from types import MappingProxyType
from typing import Callable, Optional

from polysubml import js
from polysubml import syntax as ast

_MISSING = object()


class _ScopedBindings:
    """A mapping whose insertions can be rolled back to an earlier point."""

    def __init__(self) -> None:
        self.m: dict[str, js.Expr] = {}
        self._journal: list[tuple[str, object]] = []

    def insert(self, key: str, value: js.Expr) -> None:
        self._journal.append((key, self.m.get(key, _MISSING)))
        self.m[key] = value

    def unwind_point(self) -> int:
        return len(self._journal)

    def unwind(self, point: int) -> None:
        while len(self._journal) > point:
            key, old = self._journal.pop()
            if old is _MISSING:
                del self.m[key]
            else:
                self.m[key] = old


class ModuleBuilder:
    """Naming state and variable bindings used while generating code."""

    def __init__(self) -> None:
        # Name of the JS object holding the variables of the current scope.
        self.scope_var_name = "$"
        self._scope_counter = 0
        self._param_counter = 0
        self._var_counter = 0
        self._bindings = _ScopedBindings()

    @property
    def bindings(self) -> Mapping[str, js.Expr]:
        """The JS expression each source variable currently refers to."""
        return MappingProxyType(self._bindings.m)

    def _lookup(self, name: str) -> js.Expr:
        try:
            return self._bindings.m[name]
        except KeyError:
            raise KeyError(f"unbound variable {name!r}") from None

    def _set_binding(self, name: str, value: js.Expr) -> None:
        self._bindings.insert(name, value)

    def _next_var_index(self) -> int:
        index = self._var_counter
        self._var_counter += 1
        return index

    def _new_temp_var_assign(self, rhs: js.Expr, out: list[js.Expr]) -> js.Expr:
        if rhs.should_inline():
            return rhs
        target = js.scope_field(self.scope_var_name, f"t{self._next_var_index()}")
        out.append(js.assign(target, rhs, False))
        return target

    def _new_var(self, name: str) -> js.Expr:
        target = js.scope_field(self.scope_var_name, f"v{self._next_var_index()}")
        self._set_binding(name, target)
        return target

    def _new_var_assign(self, name: str, rhs: js.Expr, out: list[js.Expr]) -> js.Expr:
        if rhs.should_inline():
            self._set_binding(name, rhs)
            return rhs
        target = self._new_var(name)
        out.append(js.assign(target, rhs, False))
        return target

    def _new_scope_name(self) -> str:
        name = f"s{self._scope_counter}"
        self._scope_counter += 1
        return name

    def _new_param_name(self) -> str:
        name = f"p{self._param_counter}"
        self._param_counter += 1
        return name

    @contextmanager
    def _ml_scope(self) -> Iterator[None]:
        point = self._bindings.unwind_point()
        try:
            yield
        finally:
            self._bindings.unwind(point)

    @contextmanager
    def _fn_scope(self) -> Iterator[None]:
        saved = (self._var_counter, self._param_counter, self._scope_counter)
        self._var_counter = 0
        try:
            with self._ml_scope():
                yield
        finally:
            self._var_counter, self._param_counter, self._scope_counter = saved


# ------------------------------------------------------------ expressions


def _compile_binop(b: ModuleBuilder, e: ast.BinOpExpr) -> js.Expr:
    lhs = compile_expr(b, e.lhs)
    rhs = compile_expr(b, e.rhs)
    return js.binop(lhs, rhs, js.Op[e.op.name])


def _compile_block(b: ModuleBuilder, e: ast.BlockExpr) -> js.Expr:
    with b._ml_scope():
        exprs: list[js.Expr] = []
        for stmt in e.statements:
            _compile_statement(b, exprs, stmt)
        exprs.append(compile_expr(b, e.expr))
        return js.comma_list(exprs)


def _compile_call(b: ModuleBuilder, e: ast.CallExpr) -> js.Expr:
    if e.eval_arg_first:
        exprs: list[js.Expr] = []
        arg = b._new_temp_var_assign(compile_expr(b, e.arg), exprs)
        func = compile_expr(b, e.func)
        exprs.append(js.call(func, arg))
        return js.comma_list(exprs)
    func = compile_expr(b, e.func)
    arg = compile_expr(b, e.arg)
    return js.call(func, arg)


def _compile_case(b: ModuleBuilder, e: ast.CaseExpr) -> js.Expr:
    tag = js.lit(f'"{e.tag[0]}"')
    return js.obj([("$tag", tag), ("$val", compile_expr(b, e.expr))])


def _compile_field_access(b: ModuleBuilder, e: ast.FieldAccessExpr) -> js.Expr:
    return js.field(compile_expr(b, e.expr), e.field[0])


def _compile_field_set(b: ModuleBuilder, e: ast.FieldSetExpr) -> js.Expr:
    exprs: list[js.Expr] = []
    obj_temp = b._new_temp_var_assign(compile_expr(b, e.expr), exprs)
    target = js.field(obj_temp, e.field[0])
    old_value = b._new_temp_var_assign(target, exprs)
    exprs.append(js.assign(target, compile_expr(b, e.value), False))
    exprs.append(old_value)
    return js.comma_list(exprs)


def _compile_func_def(b: ModuleBuilder, e: ast.FuncDefExpr) -> js.Expr:
    with b._fn_scope():
        scope = b._new_scope_name()
        outer = b.scope_var_name
        b.scope_var_name = scope
        try:
            arg = _compile_param_pattern(b, e.param[0])
            if arg is None:
                arg = js.var("_")
            body = compile_expr(b, e.body)
        finally:
            b.scope_var_name = outer
        return js.func(arg, scope, body)


def _compile_if(b: ModuleBuilder, e: ast.IfExpr) -> js.Expr:
    cond = compile_expr(b, e.cond[0])
    then_expr = compile_expr(b, e.then_expr)
    else_expr = compile_expr(b, e.else_expr)
    return js.ternary(cond, then_expr, else_expr)


def _compile_wrapped(b: ModuleBuilder, e) -> js.Expr:
    return compile_expr(b, e.expr)


def _compile_literal(b: ModuleBuilder, e: ast.LiteralExpr) -> js.Expr:
    code = e.value[0]
    if e.lit_type is ast.Literal.INT:
        code += "n"
    if code.startswith("-"):
        return js.unary_minus(js.lit(code[1:]))
    return js.lit(code)


def _compile_loop(b: ModuleBuilder, e: ast.LoopExpr) -> js.Expr:
    body = js.func(js.var("_"), "_2", compile_expr(b, e.body))
    return js.call(js.var("loop"), body)


def _compile_match(b: ModuleBuilder, e: ast.MatchExpr) -> js.Expr:
    exprs: list[js.Expr] = []
    temp = b._new_temp_var_assign(compile_expr(b, e.expr[0]), exprs)
    tag_expr = js.field(temp, "$tag")
    val_expr = js.field(temp, "$val")

    branches: list[tuple[str, js.Expr]] = []
    wildcard: Optional[js.Expr] = None
    for (pattern, _), rhs in e.cases:
        with b._ml_scope():
            arm: list[js.Expr] = []
            if isinstance(pattern, ast.CasePattern):
                _compile_let_pattern_flat(b, arm, pattern.pattern, val_expr)
                arm.append(compile_expr(b, rhs))
                branches.append((pattern.tag[0], js.comma_list(arm)))
            else:
                _compile_let_pattern_flat(b, arm, pattern, temp)
                arm.append(compile_expr(b, rhs))
                wildcard = js.comma_list(arm)

    if wildcard is not None:
        result = wildcard
    elif branches:
        result = branches.pop()[1]
    else:
        raise ValueError("match expression has no cases")

    for tag, arm_expr in reversed(branches):
        if not tag:
            raise ValueError("match case has an empty tag")
        cond = js.eqop(tag_expr, js.lit(f'"{tag}"'))
        result = js.ternary(cond, arm_expr, result)

    exprs.append(result)
    return js.comma_list(exprs)


def _compile_record(b: ModuleBuilder, e: ast.RecordExpr) -> js.Expr:
    return js.obj([(name, compile_expr(b, value)) for (name, _), value, _, _ in e.fields])


def _compile_variable(b: ModuleBuilder, e: ast.VariableExpr) -> js.Expr:
    return b._lookup(e.name)


def _reject_container(b: ModuleBuilder, e) -> js.Expr:
    raise ValueError(f"{type(e).__name__} cannot be compiled to JavaScript")


_EXPR_HANDLERS: dict[type, Callable[[ModuleBuilder, object], js.Expr]] = {
    ast.BinOpExpr: _compile_binop,
    ast.BlockExpr: _compile_block,
    ast.CallExpr: _compile_call,
    ast.CaseExpr: _compile_case,
    ast.FieldAccessExpr: _compile_field_access,
    ast.FieldSetExpr: _compile_field_set,
    ast.FuncDefExpr: _compile_func_def,
    ast.IfExpr: _compile_if,
    ast.InstantiateExistExpr: _compile_wrapped,
    ast.InstantiateUniExpr: _compile_wrapped,
    ast.LiteralExpr: _compile_literal,
    ast.LoopExpr: _compile_loop,
    ast.MatchExpr: _compile_match,
    ast.RecordExpr: _compile_record,
    ast.TypedExpr: _compile_wrapped,
    ast.VariableExpr: _compile_variable,
    ast.ArrayExpr: _reject_container,
    ast.DictExpr: _reject_container,
}


def compile_expr(builder: ModuleBuilder, expr: ast.SExpr) -> js.Expr:
    """Compile a spanned expression to a JS expression."""
    node = expr[0]
    handler = _EXPR_HANDLERS.get(type(node))
    if handler is None:
        raise TypeError(f"not an expression: {node!r}")
    return handler(builder, node)


# --------------------------------------------------------------- patterns


def _compile_let_pattern_flat(
    b: ModuleBuilder, out: list[js.Expr], pat: ast.LetPattern, rhs: js.Expr
) -> None:
    """Bind the variables of ``pat`` to parts of ``rhs`` through assignments."""
    if isinstance(pat, ast.CasePattern):
        _compile_let_pattern_flat(b, out, pat.pattern, js.field(rhs, "$val"))
    elif isinstance(pat, ast.RecordPattern):
        temp = b._new_temp_var_assign(rhs, out)
        for (name, _), sub in pat.fields:
            _compile_let_pattern_flat(b, out, sub, js.field(temp, name))
    elif pat.name is not None:
        b._new_var_assign(pat.name, rhs, out)
    else:
        out.append(rhs)


def _compile_param_pattern(b: ModuleBuilder, pat: ast.LetPattern) -> Optional[js.Expr]:
    """Compile a function parameter pattern to a JS destructuring pattern."""
    if isinstance(pat, ast.CasePattern):
        sub = _compile_param_pattern(b, pat.pattern)
        if sub is None:
            return None
        return js.obj([("$val", sub)])
    if isinstance(pat, ast.RecordPattern):
        fields = []
        for (name, _), sub_pat in pat.fields:
            sub = _compile_param_pattern(b, sub_pat)
            if sub is not None:
                fields.append((name, sub))
        return js.obj(fields)
    js_arg = js.var(b._new_param_name())
    if pat.name is None:
        return None
    b._set_binding(pat.name, js_arg)
    return js_arg


# ------------------------------------------------------------- statements


def _compile_statement(b: ModuleBuilder, exprs: list[js.Expr], stmt: ast.Statement) -> None:
    if isinstance(stmt, ast.EmptyStatement):
        return
    if isinstance(stmt, ast.ExprStatement):
        exprs.append(compile_expr(b, stmt.expr))
    elif isinstance(stmt, ast.LetDefStatement):
        rhs = compile_expr(b, stmt.expr)
        _compile_let_pattern_flat(b, exprs, stmt.pattern, rhs)
    elif isinstance(stmt, ast.LetRecDefStatement):
        targets = [b._new_var(name) for name, _ in stmt.defs]
        values = [compile_expr(b, value) for _, value in stmt.defs]
        # Dead code removal is a single backwards pass, so mutually recursive
        # definitions must be kept to avoid removing them wrongly.
        keep = len(targets) > 1
        exprs.extend(js.assign(lhs, rhs, keep) for lhs, rhs in zip(targets, values))
    elif isinstance(stmt, ast.PrintlnStatement):
        exprs.append(js.println([compile_expr(b, arg) for arg in stmt.args]))
    else:
        raise ValueError(f"{type(stmt).__name__} cannot be compiled to JavaScript")


def compile_script(builder: ModuleBuilder, statements: list[ast.Statement]) -> js.Expr:
    """Compile a whole script, removing dead assignments from the result."""
    exprs: list[js.Expr] = []
    for stmt in statements:
        _compile_statement(builder, exprs, stmt)
    # A script that does not end in an expression has no value.
    if not statements or not isinstance(statements[-1], ast.ExprStatement):
        exprs.append(js.void())

    result = js.comma_list(exprs)
    js.optimize(result, builder.scope_var_name, builder.bindings)
    return result