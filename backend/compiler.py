#!/usr/bin/env python3
"""
compiler.py
Line-by-line educational compiler pipeline (lexer → lexical/syntax/semantic checks
→ postfix → TAC IR → assembly → peephole optimization → binary machine code).

Every source line is compiled on its own against a declaration set owned by the
caller, so an error on one line never stops the rest of the program.
"""

import re
import sys
import argparse
from collections import namedtuple

# =====================================================
# CONSTANTS
# =====================================================
KEYWORDS = {'BEGIN', 'INTEGER', 'LET', 'INPUT', 'WRITE', 'END'}

PRECEDENCE = {'+': 1, '-': 1, '*': 2, '/': 2}

OP_MNEMONICS = {'+': 'ADD', '-': 'SUB', '*': 'MUL', '/': 'DIV'}

OPCODE_BINARY = {
    'ADD': '01000001',
    'SUB': '01010011',
    'MUL': '01001101',
    'DIV': '01000100',
}
UNKNOWN_OPCODE_BINARY = '00000000'

# A-Z / a-z -> 8-bit ASCII code
CHAR_BINARY = {ch: format(ord(ch), '08b')
               for ch in 'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz'}

# Anything not in CHAR_BINARY (temporaries such as t1, multi-letter names)
# encodes to this one pattern, which is also the code of 't'. Intentional:
# the target encoding is illustrative and cannot tell these operands apart.
SENTINEL_BINARY = '01110100'

BINARY_FIELD_SEP = '  '

QUIT_WORDS = {'quit', '99'}

SAMPLE_PROGRAM = [
    "BEGIN",
    "INTEGER A, B, C, E, M, N, G, H, I, a, c",
    "INPUT A, B, C",
    "LET B = A * / M",
    "LET G = a + c",
    "temp = <s %* * h - j / w + d + * $&;",
    "M = A / B + C",
    "N = G / H - I + a * B / c",
    "WRITE M",
    "WRITEE F;",
    "END",
]

# =====================================================
# ERRORS
# =====================================================
def format_error(phase, msg, lineno=None):
    if lineno is not None:
        return f"{phase} error (line {lineno}): {msg}"
    return f"{phase} error: {msg}"


class CompileError(Exception):
    phase = 'Compile'

    def __init__(self, msg):
        super().__init__(msg)
        self.msg = msg

    def format(self, lineno=None):
        return format_error(self.phase, self.msg, lineno)

    def __str__(self):
        return self.format()


class LexicalError(CompileError):
    phase = 'Lexical'


class SyntaxCheckError(CompileError):
    phase = 'Syntax'


class SemanticError(CompileError):
    phase = 'Semantic'


class InternalCompilerError(CompileError):
    """Malformed IR or assembly shape; never expected for a validated line."""
    phase = 'Internal'

# =====================================================
# LEXER
# =====================================================
Token = namedtuple('Token', ['type', 'value'])

KEYWORD = 'KEYWORD'
IDENTIFIER = 'IDENTIFIER'
OPERATOR = 'OPERATOR'
SYMBOL = 'SYMBOL'
NUMBER = 'NUMBER'
INVALID = 'INVALID'


class Lexer:
    # order matters: the first alternative that matches at a position wins
    token_specification = [
        ("KEYWORD",    r'\b(?:BEGIN|INTEGER|LET|INPUT|WRITE|END)\b'),
        ("IDENTIFIER", r'\b[a-zA-Z]+\b'),
        ("OPERATOR",   r'[+\-*/]'),
        ("SYMBOL",     r'[=,)]'),
        ("NUMBER",     r'\d+'),
        ("TRACKED",    r'[;%$&<>]'),
        ("SKIP",       r'\s+'),
        ("MISMATCH",   r'\S'),
    ]
    tok_regex = '|'.join(f'(?P<{n}>{p})' for n, p in token_specification)
    master_re = re.compile(tok_regex)

    def __init__(self, line):
        self.line = line
        self.tokens = []
        self._tokenize()

    def _tokenize(self):
        for mo in self.master_re.finditer(self.line):
            kind = mo.lastgroup
            val = mo.group()
            if kind == "SKIP":
                continue
            if kind in ("TRACKED", "MISMATCH"):
                self.tokens.append(Token(INVALID, val))
            else:
                self.tokens.append(Token(kind, val))

    def peek_all(self):
        return list(self.tokens)


def tokenize(line):
    return Lexer(line).peek_all()


def check_lexical(tokens):
    # The KEYWORD pattern only matches reserved words; this guards the
    # invariant if that pattern is ever loosened.
    for tok in tokens:
        if tok.type == KEYWORD and tok.value not in KEYWORDS:
            raise LexicalError(f"Misspelled keyword '{tok.value}'")

# =====================================================
# STATEMENTS
# =====================================================
class Statement:
    kind = None


class Begin(Statement):
    kind = 'BEGIN'


class End(Statement):
    kind = 'END'


class IntegerDecl(Statement):
    kind = 'INTEGER'

    def __init__(self, names):
        self.names = names


class Input(Statement):
    kind = 'INPUT'

    def __init__(self, names):
        self.names = names


class Write(Statement):
    kind = 'WRITE'

    def __init__(self, name):
        self.name = name


class Assign(Statement):
    kind = 'ASSIGN'

    def __init__(self, target, expr_start):
        self.target = target
        self.expr_start = expr_start  # 3 for LET, 2 for bare assignment

# =====================================================
# SYNTAX VALIDATOR
# =====================================================
class SyntaxValidator:
    """Checks one token list against the grammar and classifies the line.

    The checks run in a fixed order and the first violation is reported.
    """

    def validate(self, tokens):
        self.check_tokens(tokens)
        first = tokens[0]
        if len(tokens) == 1 and first.type == KEYWORD and first.value in ('BEGIN', 'END'):
            return Begin() if first.value == 'BEGIN' else End()
        if first.type == KEYWORD and first.value == 'INTEGER':
            return IntegerDecl(self.id_list(tokens, 'INTEGER'))
        if first.type == KEYWORD and first.value == 'INPUT':
            return Input(self.id_list(tokens, 'INPUT'))
        if first.type == KEYWORD and first.value == 'WRITE':
            if len(tokens) != 2 or tokens[1].type != IDENTIFIER:
                raise SyntaxCheckError("WRITE expects one identifier")
            return Write(tokens[1].value)
        if self.is_assignment(tokens):
            return self.assignment(tokens)
        raise SyntaxCheckError("Invalid line structure")

    def check_tokens(self, tokens):
        for tok in tokens:
            if tok.type == NUMBER:
                raise SyntaxCheckError(f"Numbers not allowed ('{tok.value}')")
        for tok in tokens:
            if tok.type == INVALID and tok.value != ';':
                raise SyntaxCheckError(f"Invalid character '{tok.value}'")
        for cur, nxt in zip(tokens, tokens[1:]):
            if cur.type == OPERATOR and nxt.type == OPERATOR:
                raise SyntaxCheckError(f"Combined operators '{cur.value}{nxt.value}'")
        if tokens and tokens[-1].value == ';':
            raise SyntaxCheckError("Semicolon not allowed at line end")
        if not tokens:
            raise SyntaxCheckError("Empty line")

    def id_list(self, tokens, keyword):
        # identifiers sit at odd positions, any SYMBOL separates them
        names = []
        for i in range(1, len(tokens), 2):
            if tokens[i].type != IDENTIFIER:
                raise SyntaxCheckError(f"Expected identifier after {keyword}")
            names.append(tokens[i].value)
            if i + 1 < len(tokens) and tokens[i + 1].type != SYMBOL:
                raise SyntaxCheckError("Expected ',' or end after identifier")
        return names

    def is_assignment(self, tokens):
        def is_eq(tok):
            return tok.type == SYMBOL and tok.value == '='
        first = tokens[0]
        if first.type == KEYWORD and first.value == 'LET':
            return len(tokens) >= 3 and tokens[1].type == IDENTIFIER and is_eq(tokens[2])
        return first.type == IDENTIFIER and len(tokens) >= 2 and is_eq(tokens[1])

    def assignment(self, tokens):
        if tokens[0].value == 'LET':
            target, start = tokens[1].value, 3
        else:
            target, start = tokens[0].value, 2
        if start >= len(tokens):
            raise SyntaxCheckError("Expected expression after '='")
        # expression: ID (OP ID)*
        for offset, tok in enumerate(tokens[start:]):
            if offset % 2 == 0 and tok.type != IDENTIFIER:
                raise SyntaxCheckError("Expected identifier in expression")
            if offset % 2 == 1 and tok.type != OPERATOR:
                raise SyntaxCheckError("Expected operator in expression")
        if (len(tokens) - start) % 2 == 0:
            raise SyntaxCheckError("Expression must end with an identifier")
        return Assign(target, start)

# =====================================================
# DECLARATIONS + SEMANTIC ANALYZER
# =====================================================
def declare(stmt, declared):
    """Record the names of an INTEGER line; other statements leave the set alone."""
    if isinstance(stmt, IntegerDecl):
        declared.update(stmt.names)


class SemanticAnalyzer:
    DISALLOWED = re.compile(r'[%$&<>]')

    def __init__(self, declared):
        self.declared = declared

    def analyze(self, stmt, tokens):
        for tok in tokens:
            if self.DISALLOWED.fullmatch(tok.value):
                raise SemanticError(f"Invalid symbol '{tok.value}'")
        if isinstance(stmt, Input):
            for name in stmt.names:
                self.require(name)
        elif isinstance(stmt, Write):
            self.require(stmt.name)
        elif isinstance(stmt, Assign):
            self.require(stmt.target)
            for tok in tokens[stmt.expr_start::2]:
                if tok.type == IDENTIFIER:
                    self.require(tok.value)

    def require(self, name):
        if name not in self.declared:
            raise SemanticError(f"Undeclared identifier '{name}'")

# =====================================================
# POSTFIX (shunting-yard)
# =====================================================
def to_postfix(tokens, start):
    output = []
    stack = []
    for tok in tokens[start:]:
        if tok.type == IDENTIFIER:
            output.append(tok.value)
        elif tok.type == OPERATOR:
            # >= keeps equal-precedence operators left-associative
            while stack and PRECEDENCE.get(stack[-1], 0) >= PRECEDENCE[tok.value]:
                output.append(stack.pop())
            stack.append(tok.value)
    while stack:
        output.append(stack.pop())
    return output

# =====================================================
# IR (TAC) GENERATION
# =====================================================
class TACInstruction:
    def __init__(self, dest, arg1, op, arg2):
        self.dest = dest
        self.arg1 = arg1
        self.op = op
        self.arg2 = arg2

    def __repr__(self):
        return f"{self.dest} = {self.arg1} {self.op} {self.arg2}"

    def __eq__(self, other):
        if not isinstance(other, TACInstruction):
            return NotImplemented
        return (self.dest, self.arg1, self.op, self.arg2) == \
            (other.dest, other.arg1, other.op, other.arg2)


class IRGenerator:
    def __init__(self):
        self.tac = []
        self.temp_count = 0

    def new_temp(self):
        self.temp_count += 1
        return f"t{self.temp_count}"

    def gen(self, postfix):
        self.tac = []
        self.temp_count = 0
        stack = []
        for item in postfix:
            if item in PRECEDENCE:
                if len(stack) < 2:
                    raise InternalCompilerError(f"operand stack underflow at '{item}'")
                arg2 = stack.pop()
                arg1 = stack.pop()
                dest = self.new_temp()
                self.tac.append(TACInstruction(dest, arg1, item, arg2))
                stack.append(dest)
            else:
                stack.append(item)
        return self.tac

# =====================================================
# ASSEMBLY GENERATION
# =====================================================
class AsmInstruction(namedtuple('AsmInstruction', ['opcode', 'operand'])):
    __slots__ = ()

    def __str__(self):
        return f"{self.opcode} {self.operand}"


class OptimizedInstruction(namedtuple('OptimizedInstruction', ['opcode', 'dest', 'arg1', 'arg2'])):
    __slots__ = ()

    def __str__(self):
        return f"{self.opcode} {self.dest}, {self.arg1}, {self.arg2}"


def tac_to_assembly(tac, target):
    asm = []
    last = len(tac) - 1
    for i, instr in enumerate(tac):
        mnemonic = OP_MNEMONICS.get(instr.op)
        if mnemonic is None:
            raise InternalCompilerError(f"unknown operator {instr.op!r}")
        # the final result goes straight into the assignment target
        store = target if i == last else instr.dest
        asm.append(AsmInstruction('LDA', instr.arg1))
        asm.append(AsmInstruction(mnemonic, instr.arg2))
        asm.append(AsmInstruction('STR', store))
    return asm

# =====================================================
# PEEPHOLE OPTIMIZER
# =====================================================
def peephole_optimize(asm):
    """Fold every LDA/OP/STR triple into one three-operand instruction."""
    if len(asm) % 3 != 0:
        raise InternalCompilerError(f"assembly length {len(asm)} is not a multiple of 3")
    optimized = []
    for i in range(0, len(asm), 3):
        load, op, store = asm[i:i + 3]
        if not all(isinstance(ins, AsmInstruction) for ins in (load, op, store)) \
                or load.opcode != 'LDA' or op.opcode not in OPCODE_BINARY or store.opcode != 'STR':
            raise InternalCompilerError(f"malformed instruction group at {i}: "
                                        f"{load}; {op}; {store}")
        optimized.append(OptimizedInstruction(op.opcode, store.operand, load.operand, op.operand))
    return optimized

# =====================================================
# BINARY (target machine code)
# =====================================================
def encode_operand(name):
    return CHAR_BINARY.get(name, SENTINEL_BINARY)


def encode_binary(optimized):
    lines = []
    for instr in optimized:
        fields = [
            OPCODE_BINARY.get(instr.opcode, UNKNOWN_OPCODE_BINARY),
            encode_operand(instr.dest),
            encode_operand(instr.arg1),
            encode_operand(instr.arg2),
        ]
        lines.append(BINARY_FIELD_SEP.join(fields))
    return lines

# =====================================================
# COMPILER DRIVER
# =====================================================
def compile_line(line, declared, lineno=None):
    """Compile one source line against `declared`, which INTEGER lines extend."""
    result = {
        'line': line,
        'lineno': lineno,
        'tokens': [],
        'status': 'valid',
        'error': None,
        'phase': None,
        'statement': None,
        'postfix': [],
        'tac': [],
        'asm': [],
        'optimized': [],
        'binary': [],
    }
    try:
        tokens = tokenize(line)
        result['tokens'] = tokens
        check_lexical(tokens)

        stmt = SyntaxValidator().validate(tokens)
        result['statement'] = stmt.kind
        declare(stmt, declared)
        SemanticAnalyzer(declared).analyze(stmt, tokens)

        if isinstance(stmt, Assign):
            postfix = to_postfix(tokens, stmt.expr_start)
            result['postfix'] = postfix
            tac = IRGenerator().gen(postfix)
            result['tac'] = tac
            asm = tac_to_assembly(tac, stmt.target)
            result['asm'] = asm
            optimized = peephole_optimize(asm)
            result['optimized'] = optimized
            result['binary'] = encode_binary(optimized)
    except CompileError as e:
        result['status'] = 'error'
        result['error'] = e.format(lineno)
        result['phase'] = e.phase
    return result


def split_lines(source):
    if isinstance(source, str):
        return source.splitlines()
    return list(source)


def compile_program(source, verbose=False):
    declared = set()
    results = []
    errors = []
    for lineno, line in enumerate(split_lines(source), start=1):
        res = compile_line(line, declared, lineno)
        results.append(res)
        if res['error']:
            errors.append(res['error'])
    program = {
        'lines': results,
        'errors': errors,
        'declared': sorted(declared),
    }
    if verbose:
        print_report(program)
    return program

# =====================================================
# REPORTER
# =====================================================
def format_tokens(tokens):
    return ", ".join(f"{t.value} ({t.type})" for t in tokens)


def format_line_report(res):
    out = [f"Line {res['lineno']}: {res['line']}" if res['lineno'] is not None
           else f"Line: {res['line']}"]
    if res['tokens']:
        out.append(f"  Tokens: {format_tokens(res['tokens'])}")
    if res['error']:
        out.append(f"  {res['error']}")
        return out
    out.append("  Status: Valid")
    if res['statement'] != Assign.kind:
        return out
    out.append(f"  Postfix: {' '.join(res['postfix'])}")
    sections = [
        ("ICR", res['tac']),
        ("Assembly", res['asm']),
        ("Optimized Assembly", res['optimized']),
        ("TMC", res['binary']),
    ]
    for title, items in sections:
        out.append(f"  {title}:")
        out.extend(f"    {item}" for item in map(str, items))
    return out


def print_report(program, file=None):
    file = file or sys.stdout
    for res in program['lines']:
        print("", file=file)
        for text in format_line_report(res):
            print(text, file=file)
    print("\nCompilation Complete", file=file)

# =====================================================
# COMMAND LINE
# =====================================================
def interactive(stdin=None, stdout=None):
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    declared = set()
    lineno = 0
    print("Enter one line at a time, 'quit' to stop.", file=stdout)
    for raw in stdin:
        line = raw.rstrip('\n')
        if line.strip() in QUIT_WORDS:
            break
        lineno += 1
        for text in format_line_report(compile_line(line, declared, lineno)):
            print(text, file=stdout)
    print("Exiting...", file=stdout)
    return declared


def main(argv=None):
    ap = argparse.ArgumentParser(description="Line-by-line mini compiler")
    ap.add_argument('source', nargs='?', help="program file (default: built-in sample)")
    ap.add_argument('-i', '--interactive', action='store_true',
                    help="read lines from stdin until 'quit'")
    args = ap.parse_args(argv)

    if args.interactive:
        interactive()
        return 0
    if args.source:
        with open(args.source) as f:
            lines = f.read().splitlines()
    else:
        lines = SAMPLE_PROGRAM
    print("Mini Compiler line by line")
    print("--------------------------")
    program = compile_program(lines, verbose=True)
    return 1 if program['errors'] and args.source else 0


if __name__ == '__main__':
    sys.exit(main())
