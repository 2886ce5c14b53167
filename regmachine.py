'''
Register machine with named opcodes.

Every instruction is "name a b c" and writes register c. The last letter(s)
of the name say whether a and b are register numbers (r) or immediate
values (i). Optionally the instruction pointer is bound to a register, so
the program can read and redirect it like any other value.
'''

from collections import namedtuple
import logging

from intcode import (
    InvalidRegisterException, MachineException, MachineHaltedException,
    SearchFailedException, UnknownOpcodeException,
)

logger = logging.getLogger(__name__)

REGISTER_MASK = (1 << 64) - 1


class Registers(object):
    '''Fixed number of unsigned 64-bit registers.'''

    def __init__(self, values=None, size=4):
        if values is None:
            values = [0] * size
        self.data = [v & REGISTER_MASK for v in values]

    def _check(self, i):
        if not 0 <= i < len(self.data):
            raise InvalidRegisterException('register %d does not exist (have %d)' % (i, len(self.data)))

    def __getitem__(self, i):
        self._check(i)
        return self.data[i]

    def __setitem__(self, i, value):
        self._check(i)
        self.data[i] = value & REGISTER_MASK

    def __len__(self):
        return len(self.data)

    def __eq__(self, other):
        if isinstance(other, Registers):
            return self.data == other.data
        return self.data == list(other)

    def __repr__(self):
        return 'Registers(%r)' % self.data

    def copy(self):
        return Registers(self.data)


def op_addr(regs, a, b): return regs[a] + regs[b]
def op_addi(regs, a, b): return regs[a] + b
def op_mulr(regs, a, b): return regs[a] * regs[b]
def op_muli(regs, a, b): return regs[a] * b
def op_banr(regs, a, b): return regs[a] & regs[b]
def op_bani(regs, a, b): return regs[a] & b
def op_borr(regs, a, b): return regs[a] | regs[b]
def op_bori(regs, a, b): return regs[a] | b
def op_setr(regs, a, b): return regs[a]
def op_seti(regs, a, b): return a
def op_gtir(regs, a, b): return 1 if a > regs[b] else 0
def op_gtri(regs, a, b): return 1 if regs[a] > b else 0
def op_gtrr(regs, a, b): return 1 if regs[a] > regs[b] else 0
def op_eqir(regs, a, b): return 1 if a == regs[b] else 0
def op_eqri(regs, a, b): return 1 if regs[a] == b else 0
def op_eqrr(regs, a, b): return 1 if regs[a] == regs[b] else 0

# name: (function, rendering)
OPCODES = {
    'addr': (op_addr, 'r{c} = r{a} + r{b}'),
    'addi': (op_addi, 'r{c} = r{a} + {b}'),
    'mulr': (op_mulr, 'r{c} = r{a} * r{b}'),
    'muli': (op_muli, 'r{c} = r{a} * {b}'),
    'banr': (op_banr, 'r{c} = r{a} & r{b}'),
    'bani': (op_bani, 'r{c} = r{a} & {b}'),
    'borr': (op_borr, 'r{c} = r{a} | r{b}'),
    'bori': (op_bori, 'r{c} = r{a} | {b}'),
    'setr': (op_setr, 'r{c} = r{a}'),
    'seti': (op_seti, 'r{c} = {a}'),
    'gtir': (op_gtir, 'r{c} = {a} > r{b}'),
    'gtri': (op_gtri, 'r{c} = r{a} > {b}'),
    'gtrr': (op_gtrr, 'r{c} = r{a} > r{b}'),
    'eqir': (op_eqir, 'r{c} = {a} == r{b}'),
    'eqri': (op_eqri, 'r{c} = r{a} == {b}'),
    'eqrr': (op_eqrr, 'r{c} = r{a} == r{b}'),
}


class Instruction(namedtuple('Instruction', ['opcode', 'a', 'b', 'c'])):
    '''One register instruction. opcode is a name from OPCODES, or a number
    before the numbers have been translated.'''
    __slots__ = ()

    def execute(self, regs):
        if self.opcode not in OPCODES:
            raise UnknownOpcodeException('unknown opcode %r' % (self.opcode,))
        (func, _) = OPCODES[self.opcode]
        regs[self.c] = func(regs, self.a, self.b)

    def __str__(self):
        if self.opcode not in OPCODES:
            return '%s %d %d %d' % self
        return OPCODES[self.opcode][1].format(a=self.a, b=self.b, c=self.c)


Sample = namedtuple('Sample', ['before', 'instruction', 'after'])


class RegisterMachine(object):

    def __init__(self, instructions, ip_register=None, size=6, machine_id=0):
        self.instructions = list(instructions)
        self.ip_register = ip_register
        self.size = size
        self.machine_id = machine_id
        if ip_register is not None and not 0 <= ip_register < size:
            raise InvalidRegisterException('ip bound to register %d of %d' % (ip_register, size))
        self.reset()

    def reset(self, registers=None):
        self.regs = Registers(registers, self.size)
        if len(self.regs) != self.size:
            raise InvalidRegisterException('%d initial values for %d registers' % (len(self.regs), self.size))
        self.ip = 0
        self.count = 0  # num instructions executed
        self.halted = not self.instructions

    def step(self):
        if self.halted:
            raise MachineHaltedException()
        instr = self.instructions[self.ip]
        try:
            if self.ip_register is not None:
                self.regs[self.ip_register] = self.ip
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug('%2d %5d: %-20s %s' % (self.machine_id, self.ip, instr, self.regs.data))
            instr.execute(self.regs)
            if self.ip_register is not None:
                self.ip = self.regs[self.ip_register]
        except MachineException as e:
            if e.ip is None:
                e.ip = self.ip
            raise
        self.ip += 1
        self.count += 1
        if not 0 <= self.ip < len(self.instructions):
            self.halted = True
            logger.info('Machine %d halted after %d instructions' % (self.machine_id, self.count))
        return not self.halted

    def run(self, steps=0, breakpoints=None):
        '''Runs until the machine halts, steps instructions have executed or the
        ip reaches one of breakpoints. Returns the registers.'''
        if steps:
            while steps > 0 and self.step():
                steps -= 1
        elif breakpoints:
            while self.ip not in breakpoints and self.step():
                pass
        else:
            while self.step():
                pass
        return self.regs

    def disassemble(self):
        return ['%3d: %s' % (i, instr) for i, instr in enumerate(self.instructions)]


def run_program(instructions, ip_register=None, registers=None, size=6):
    machine = RegisterMachine(instructions, ip_register, size)
    machine.reset(registers)
    return machine.run()


def last_unique_at(machine, addr, register):
    '''Collects the value of register every time the ip reaches addr.

    Returns the last new value seen before the first repeat. For a program
    that halts when that register matches register 0, this is the input that
    keeps it running longest.
    '''
    seen = set()
    last = None
    while not machine.halted:
        machine.run(breakpoints=[addr])
        if machine.halted:
            break
        value = machine.regs[register]
        if value in seen:
            logger.info('r%d repeated %d after %d values' % (register, value, len(seen)))
            return last
        seen.add(value)
        last = value
        machine.step()
    raise SearchFailedException('halted before r%d repeated at %d' % (register, addr))


def sum_of_divisors(n):
    total = 0
    d = 1
    while d * d <= n:
        if n % d == 0:
            total += d
            if d != n // d:
                total += n // d
        d += 1
    return total


def divisor_sum_shortcut(machine, addr=1, register=None):
    '''Answers a divisor-sum program without running its quadratic loop.

    Runs the setup until the ip first reaches addr, then sums the divisors of
    the target register. By default that is the one compared against in
    instruction 4.
    '''
    if register is None:
        register = machine.instructions[4].b
    machine.run(breakpoints=[addr])
    if machine.halted:
        raise SearchFailedException('halted before reaching %d' % addr)
    return sum_of_divisors(machine.regs[register])


def matching_opcodes(sample):
    '''Names of all opcodes that turn sample.before into sample.after.'''
    matches = set()
    _, a, b, c = sample.instruction
    for name in OPCODES:
        regs = sample.before.copy()
        try:
            Instruction(name, a, b, c).execute(regs)
        except InvalidRegisterException:
            continue
        if regs == sample.after:
            matches.add(name)
    return matches


def count_ambiguous(samples, threshold=3):
    return sum(1 for s in samples if len(matching_opcodes(s)) >= threshold)


def deduce_opcodes(samples):
    '''Works out which number stands for which opcode.

    Returns a dict from opcode number to name.
    '''
    candidates = {}
    for sample in samples:
        number = sample.instruction[0]
        matches = matching_opcodes(sample)
        candidates[number] = candidates[number] & matches if number in candidates else matches

    mapping = {}
    while candidates:
        solved = {n: names for n, names in candidates.items() if len(names) == 1}
        if not solved:
            raise OpcodeDeductionException('cannot tell apart opcodes %s' % sorted(candidates))
        for number, names in solved.items():
            name = names.pop()
            if name in mapping.values():
                raise OpcodeDeductionException('%s matches both %d and %d' % (
                    name, number, next(n for n, v in mapping.items() if v == name)))
            mapping[number] = name
            del candidates[number]
        taken = set(mapping.values())
        for number in candidates:
            candidates[number] -= taken
    return mapping


def translate(program, mapping):
    '''Replaces opcode numbers with names.'''
    result = []
    for number, a, b, c in program:
        if number not in mapping:
            raise UnknownOpcodeException('no opcode known for number %d' % number)
        result.append(Instruction(mapping[number], a, b, c))
    return result


class OpcodeDeductionException(MachineException):
    '''The samples do not pin down every opcode.'''
    pass
