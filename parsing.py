import re

from intcode import ParseException
from regmachine import OPCODES, Instruction, Registers, Sample

IP_DIRECTIVE = re.compile(r'^#ip\s+(\d+)$')
SAMPLE = re.compile(
    r'Before:\s*\[([^\]]*)\]\s*\n'
    r'\s*(\d+)\s+(\d+)\s+(\d+)\s+(\d+)\s*\n'
    r'\s*After:\s*\[([^\]]*)\]')


def parse_intcode(text):
    '''Parses a comma separated list of integers.'''
    tokens = text.strip().split(',')
    try:
        return [int(token) for token in tokens]
    except ValueError:
        bad = next(t for t in tokens if not _is_int(t))
        raise ParseException('invalid program value %r' % bad.strip())


def _is_int(token):
    try:
        int(token)
    except ValueError:
        return False
    return True


def _numbers(line, count, lineno):
    fields = line.split()
    if len(fields) != count:
        raise ParseException('line %d: expected %d fields, got %r' % (lineno, count, line))
    try:
        return [int(f) for f in fields]
    except ValueError:
        raise ParseException('line %d: expected integers, got %r' % (lineno, line))


def parse_register_program(text):
    '''Parses "name a b c" lines, optionally preceded by an "#ip N" line.

    Returns (ip_register, instructions); ip_register is None without the directive.
    '''
    ip_register = None
    instructions = []
    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        m = IP_DIRECTIVE.match(line)
        if m:
            if instructions or ip_register is not None:
                raise ParseException('line %d: #ip must come first' % lineno)
            ip_register = int(m.group(1))
            continue
        name, _, rest = line.partition(' ')
        if name not in OPCODES:
            raise ParseException('line %d: unknown opcode %r' % (lineno, name))
        instructions.append(Instruction(name, *_numbers(rest, 3, lineno)))
    if not instructions:
        raise ParseException('program has no instructions')
    return ip_register, instructions


def _registers(text):
    try:
        return Registers([int(v) for v in text.split(',')])
    except ValueError:
        raise ParseException('invalid registers [%s]' % text)


def parse_samples(text):
    '''Parses Before/instruction/After samples followed by a numeric program.

    Returns (samples, program) where the program instructions still carry
    opcode numbers.
    '''
    samples = []
    end = 0
    for m in SAMPLE.finditer(text):
        instruction = Instruction(*[int(g) for g in m.group(2, 3, 4, 5)])
        samples.append(Sample(_registers(m.group(1)), instruction, _registers(m.group(6))))
        end = m.end()

    program = []
    first_line = text.count('\n', 0, end) + 1
    for lineno, line in enumerate(text[end:].splitlines(), first_line):
        if line.strip():
            program.append(Instruction(*_numbers(line, 4, lineno)))
    return samples, program
