import pytest

from polysubml import js
from polysubml.codegen import ModuleBuilder, compile_expr, compile_script
from polysubml.spans import Span
from polysubml.syntax import (
    ArrayExpr,
    BinOpExpr,
    BlockExpr,
    CallExpr,
    CaseExpr,
    CasePattern,
    FieldSetExpr,
    FuncDefExpr,
    IfExpr,
    ImportStatement,
    INT_OP,
    LetDefStatement,
    LetRecDefStatement,
    Literal,
    LiteralExpr,
    LoopExpr,
    MatchExpr,
    Op,
    PrintlnStatement,
    RecordExpr,
    ExprStatement,
    VariableExpr,
    VarPattern,
    make_call,
    make_tuple_expr,
    make_tuple_pattern,
)

S = Span(0)
LONG = '"a long string"'


def sx(node):
    return (node, S)


def int_lit(text):
    return sx(LiteralExpr(Literal.INT, (text, S)))


def str_lit(text):
    return sx(LiteralExpr(Literal.STR, (text, S)))


def var_pat(name):
    return VarPattern(name, S)


def ident_func(name="x"):
    return sx(FuncDefExpr(None, (var_pat(name), S), None, sx(VariableExpr(name))))


def test_int_literal_gets_bigint_suffix():
    assert compile_expr(ModuleBuilder(), int_lit("42")) == js.lit("42n")


def test_negative_literal_becomes_unary_minus():
    res = compile_expr(ModuleBuilder(), int_lit("-3"))
    assert res == js.unary_minus(js.lit("3n"))
    assert res.to_source() == "-3n"


def test_float_literal_unchanged():
    res = compile_expr(ModuleBuilder(), sx(LiteralExpr(Literal.FLOAT, ("1.5", S))))
    assert res == js.lit("1.5")


def test_binop_maps_operator():
    e = sx(BinOpExpr(int_lit("1"), int_lit("2"), INT_OP, Op.ADD))
    assert compile_expr(ModuleBuilder(), e) == js.binop(js.lit("1n"), js.lit("2n"), js.Op.ADD)


def test_unbound_variable_raises():
    with pytest.raises(KeyError):
        compile_expr(ModuleBuilder(), sx(VariableExpr("nope")))


def test_case_expression_builds_tagged_object():
    res = compile_expr(ModuleBuilder(), sx(CaseExpr(("A", S), int_lit("1"))))
    assert res == js.obj([("$tag", js.lit('"A"')), ("$val", js.lit("1n"))])


def test_record_expression():
    e = sx(RecordExpr([(("a", S), int_lit("1"), False, None), (("b", S), int_lit("2"), True, None)]))
    assert compile_expr(ModuleBuilder(), e) == js.obj([("a", js.lit("1n")), ("b", js.lit("2n"))])


def test_function_definition_uses_param_and_scope_names():
    builder = ModuleBuilder()
    res = compile_expr(builder, ident_func())
    assert res == js.func(js.var("p0"), "s0", js.var("p0"))
    assert builder.scope_var_name == "$"
    assert "x" not in builder.bindings


def test_function_with_unnamed_param_uses_underscore():
    e = sx(FuncDefExpr(None, (var_pat(None), S), None, int_lit("1")))
    assert compile_expr(ModuleBuilder(), e) == js.func(js.var("_"), "s0", js.lit("1n"))


def test_if_expression():
    cond = sx(LiteralExpr(Literal.BOOL, ("true", S)))
    e = sx(IfExpr((cond, S), int_lit("1"), int_lit("2")))
    assert compile_expr(ModuleBuilder(), e) == js.ternary(js.lit("true"), js.lit("1n"), js.lit("2n"))


def test_loop_expression():
    res = compile_expr(ModuleBuilder(), sx(LoopExpr(int_lit("1"))))
    assert res == js.call(js.var("loop"), js.func(js.var("_"), "_2", js.lit("1n")))


def test_call_plain_and_implicit_instantiation_are_equivalent():
    direct = compile_expr(ModuleBuilder(), sx(CallExpr(ident_func(), int_lit("1"), False)))
    wrapped = compile_expr(ModuleBuilder(), sx(make_call(ident_func(), int_lit("1"), False)))
    expected = js.call(js.func(js.var("p0"), "s0", js.var("p0")), js.lit("1n"))
    assert direct == expected
    assert wrapped == expected


def test_call_evaluating_argument_first_uses_temp():
    res = compile_expr(ModuleBuilder(), sx(CallExpr(ident_func(), str_lit(LONG), True)))
    temp = js.scope_field("$", "t0")
    expected = js.comma_list(
        [
            js.assign(temp, js.lit(LONG), False),
            js.call(js.func(js.var("p0"), "s0", js.var("p0")), temp),
        ]
    )
    assert res == expected


def test_field_set_returns_old_value():
    record = sx(RecordExpr([(("a", S), int_lit("1"), True, None)]))
    res = compile_expr(ModuleBuilder(), sx(FieldSetExpr(record, ("a", S), int_lit("2"))))
    t0 = js.scope_field("$", "t0")
    t1 = js.scope_field("$", "t1")
    target = js.field(t0, "a")
    expected = js.comma_list(
        [
            js.assign(t0, js.obj([("a", js.lit("1n"))]), False),
            js.assign(t1, target, False),
            js.assign(target, js.lit("2n"), False),
            t1,
        ]
    )
    assert res == expected


def _tag_case(tag, result):
    return ((CasePattern((tag, S), var_pat(None)), S), int_lit(result))


def test_match_builds_ternary_chain():
    scrutinee = sx(CaseExpr(("A", S), int_lit("1")))
    e = sx(MatchExpr((scrutinee, S), [_tag_case("A", "10"), _tag_case("B", "20")]))
    res = compile_expr(ModuleBuilder(), e)

    t0 = js.scope_field("$", "t0")
    val = js.field(t0, "$val")
    arm_a = js.comma_list([val, js.lit("10n")])
    arm_b = js.comma_list([val, js.lit("20n")])
    expected = js.comma_list(
        [
            js.assign(t0, js.obj([("$tag", js.lit('"A"')), ("$val", js.lit("1n"))]), False),
            js.ternary(js.eqop(js.field(t0, "$tag"), js.lit('"A"')), arm_a, arm_b),
        ]
    )
    assert res == expected


def test_match_wildcard_is_fallback():
    scrutinee = sx(CaseExpr(("A", S), int_lit("1")))
    wildcard_case = ((var_pat("y"), S), sx(VariableExpr("y")))
    e = sx(MatchExpr((scrutinee, S), [_tag_case("A", "10"), wildcard_case]))
    builder = ModuleBuilder()
    res = compile_expr(builder, e)

    t0 = js.scope_field("$", "t0")
    arm_a = js.comma_list([js.field(t0, "$val"), js.lit("10n")])
    expected = js.comma_list(
        [
            js.assign(t0, js.obj([("$tag", js.lit('"A"')), ("$val", js.lit("1n"))]), False),
            js.ternary(js.eqop(js.field(t0, "$tag"), js.lit('"A"')), arm_a, t0),
        ]
    )
    assert res == expected
    assert "y" not in builder.bindings


def test_match_without_cases_raises():
    e = sx(MatchExpr((int_lit("1"), S), []))
    with pytest.raises(ValueError):
        compile_expr(ModuleBuilder(), e)


def test_array_expression_is_rejected():
    with pytest.raises(ValueError):
        compile_expr(ModuleBuilder(), sx(ArrayExpr("Array", [int_lit("1")])))


def test_import_statement_is_rejected():
    with pytest.raises(ValueError):
        compile_script(ModuleBuilder(), [ImportStatement(("lib", S))])


def test_let_of_short_literal_is_inlined():
    builder = ModuleBuilder()
    stmts = [LetDefStatement(var_pat("x"), int_lit("1")), ExprStatement(sx(VariableExpr("x")))]
    res = compile_script(builder, stmts)
    assert res.to_source() == "1n"
    assert builder.bindings["x"] == js.lit("1n")


def test_top_level_let_kept_and_script_value_is_void():
    builder = ModuleBuilder()
    res = compile_script(builder, [LetDefStatement(var_pat("x"), str_lit(LONG))])
    v0 = js.scope_field("$", "v0")
    assert res == js.comma_list([js.assign(v0, js.lit(LONG), False), js.void()])
    assert builder.bindings["x"] == v0


def test_unused_let_inside_block_is_removed():
    block = sx(BlockExpr([LetDefStatement(var_pat("x"), str_lit(LONG))], int_lit("1")))
    res = compile_script(ModuleBuilder(), [ExprStatement(block)])
    assert res.to_source() == "1n"


def test_tuple_destructuring():
    pattern = make_tuple_pattern([(var_pat("a"), S), (var_pat("b"), S)], S)
    value = sx(make_tuple_expr([int_lit("1"), int_lit("2")]))
    body = sx(BinOpExpr(sx(VariableExpr("a")), sx(VariableExpr("b")), INT_OP, Op.ADD))
    res = compile_script(ModuleBuilder(), [LetDefStatement(pattern, value), ExprStatement(body)])

    t0 = js.scope_field("$", "t0")
    v1 = js.scope_field("$", "v1")
    v2 = js.scope_field("$", "v2")
    expected = js.comma_list(
        [
            js.assign(t0, js.obj([("_0", js.lit("1n")), ("_1", js.lit("2n"))]), False),
            js.assign(v1, js.field(t0, "_0"), False),
            js.assign(v2, js.field(t0, "_1"), False),
            js.binop(v1, v2, js.Op.ADD),
        ]
    )
    assert res == expected


def test_mutually_recursive_definitions_are_kept():
    f1 = sx(FuncDefExpr(None, (var_pat(None), S), None, int_lit("1")))
    f2 = sx(FuncDefExpr(None, (var_pat(None), S), None, int_lit("2")))
    res = compile_script(ModuleBuilder(), [LetRecDefStatement([("f", f1), ("g", f2)])])
    expected = js.comma_list(
        [
            js.assign(js.scope_field("$", "v0"), js.func(js.var("_"), "s0", js.lit("1n")), True),
            js.assign(js.scope_field("$", "v1"), js.func(js.var("_"), "s0", js.lit("2n")), True),
            js.void(),
        ]
    )
    assert res == expected


def test_println_statement():
    res = compile_script(ModuleBuilder(), [PrintlnStatement([int_lit("1"), int_lit("2")])])
    assert res == js.comma_list([js.println([js.lit("1n"), js.lit("2n")]), js.void()])


def test_function_scope_restarts_variable_numbering():
    inner_block = sx(
        BlockExpr([LetDefStatement(var_pat("y"), str_lit(LONG))], sx(VariableExpr("y")))
    )
    func_expr = sx(FuncDefExpr(None, (var_pat(None), S), None, inner_block))
    stmts = [
        LetDefStatement(var_pat("x"), str_lit(LONG)),
        ExprStatement(func_expr),
    ]
    builder = ModuleBuilder()
    res = compile_script(builder, stmts)
    inner = js.scope_field("s0", "v0")
    expected = js.comma_list(
        [
            js.assign(js.scope_field("$", "v0"), js.lit(LONG), False),
            js.func(js.var("_"), "s0", js.comma_list([js.assign(inner, js.lit(LONG), False), inner])),
        ]
    )
    assert res == expected
    assert builder.scope_var_name == "$"


def test_empty_script_is_void():
    assert compile_script(ModuleBuilder(), []) == js.void()