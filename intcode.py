from collections import Counter, deque
from queue import Queue, Empty
import logging
import sys

logger = logging.getLogger(__name__)

# What an IN instruction does when its source has nothing to give.
# With neither flag set the machine pauses: blocked_on_input is raised and the IP stays put.
CRASH_ON_EOF = False   # Raise InputExhaustedException
BLOCK_ON_EOF = False   # Wait on the source (channels may time out or be closed)

SHOW_PROGRESS = False
TRACE_LENGTH = 100

OPCODE_ADD = 1
OPCODE_MULT = 2
OPCODE_IN = 3
OPCODE_OUT = 4
OPCODE_JT = 5
OPCODE_JF = 6
OPCODE_LT = 7
OPCODE_EQ = 8
OPCODE_ARB = 9
OPCODE_HALT = 99

MODE_POSITION = 0
MODE_IMMEDIATE = 1
MODE_RELATIVE = 2

PARAM_READ = 'r'
PARAM_WRITE = 'w'


class Memory(object):
    '''Word store addressed by non-negative integers.

    Addresses that were never written read as zero. If size is given the
    store behaves like a fixed array and addresses at or beyond it fault.
    '''

    def __init__(self, data=(), size=None):
        self.size = size
        self._cells = {}
        for addr, value in enumerate(data):
            self.write(addr, value)

    def _check(self, addr):
        if addr < 0:
            raise AddressOutOfBoundsException('negative address %d' % addr)
        if self.size is not None and addr >= self.size:
            raise AddressOutOfBoundsException('address %d outside memory of size %d' % (addr, self.size))

    def read(self, addr):
        self._check(addr)
        return self._cells.get(addr, 0)

    def write(self, addr, value):
        self._check(addr)
        self._cells[addr] = value

    def __len__(self):
        return max(self._cells) + 1 if self._cells else 0

    def dump(self):
        return [self._cells.get(addr, 0) for addr in range(len(self))]


class Machine(object):
    '''An IntCode computer.

    Code and data share one sparse Memory. Each instruction word holds the
    opcode in its two lowest decimal digits and one addressing mode digit per
    parameter above that.
    '''

    def __init__(self, program, machine_id=0, memory_size=None):
        self.program = list(program)
        self.machine_id = machine_id
        self.memory_size = memory_size
        self.crash_on_eof = CRASH_ON_EOF
        self.block_on_eof = BLOCK_ON_EOF
        self.cancel_event = None
        self._input = None
        self._output = None
        self.reset()

    def reset(self):
        self.mem = Memory(self.program, self.memory_size)
        self.ip = 0
        self.relative_base = 0
        self.count = 0  # num instructions executed
        self.instr_count = Counter()
        self.ip_trace = deque(maxlen=TRACE_LENGTH)
        self.halted = False
        self.faulted = False
        self.blocked_on_input = False

    def read(self, addr):
        data = self.mem.read(addr)
        logger.debug('Reading %d from [%d]', data, addr)
        return data

    def write(self, addr, data):
        logger.debug('Writing %d to [%d]', data, addr)
        self.mem.write(addr, data)

    def init_io(self, input=None, output=None):
        if input is None:
            self._input = StdinSource()
        elif isinstance(input, (list, tuple)):
            self._input = Queue()
            for x in input:
                self._input.put(x)
        else:
            self._input = input

        if output is None:
            self._output = StdoutSink()
        else:
            self._output = output

    def feed_input(self, v):
        self._input.put(v)
        self.blocked_on_input = False

    def close_output(self):
        close = getattr(self._output, 'close', None)
        if close is not None:
            close()

    def run(self, input=None, output=None, steps=0, breakpoints=None):
        self.init_io(input, output)
        return self._run(steps, breakpoints)

    def run_until_halted(self):
        try:
            while True:
                self.step()
        except MachineHaltedException:
            pass

    def _run(self, steps=0, breakpoints=None):
        if steps:
            while steps > 0 and self.step():
                steps -= 1
        elif breakpoints:
            while self.ip not in breakpoints and self.step():
                pass
        else:
            while self.step():
                if self.blocked_on_input:
                    break

        if isinstance(self._output, ReturnSink):
            return self._output.values

    def run_until_next_io(self, input=None, output=None, feed_input=None):
        '''Steps until the machine produces a value, needs input or halts.

        Returns the produced value, or None if the machine halted or is blocked.'''
        if self._input is None:
            self.init_io(input if input else Queue(), output if output else Queue())
        if feed_input:
            for x in feed_input:
                self.feed_input(x)
        while not self.halted and not self.blocked_on_input and self._output.empty():
            self.step()
        if self.halted or self.blocked_on_input:
            return None
        return self._output.get()

    def decode(self, ip):
        '''Decodes the instruction at ip.

        Returns (opcode, operands, length). Read parameters are resolved to
        their values, write parameters to the address that will be written.
        '''
        word = self.read(ip)
        opcode = word % 100
        if word < 0 or opcode not in self.opcodes:
            raise UnknownOpcodeException('unknown opcode %d at addr %d' % (word, ip))
        (_, _, params) = self.opcodes[opcode]
        modes = word // 100
        operands = []
        for ofs, kind in enumerate(params):
            operands.append(self.resolve(self.read(ip + 1 + ofs), modes % 10, kind))
            modes //= 10
        return opcode, operands, 1 + len(params)

    def resolve(self, raw, mode, kind):
        if mode == MODE_IMMEDIATE and kind == PARAM_READ:
            return raw
        if mode == MODE_POSITION:
            addr = raw
        elif mode == MODE_RELATIVE:
            addr = self.relative_base + raw
        else:
            raise InvalidAddressingModeException(
                'invalid mode %d for %s parameter' % (mode, 'write' if kind == PARAM_WRITE else 'read'))
        if kind == PARAM_WRITE:
            return addr
        return self.read(addr)

    def step(self):
        if self._input is None or self._output is None:
            self.init_io()
        if self.halted:
            raise MachineHaltedException()
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise MachineCancelledException('machine %d cancelled at addr %d' % (self.machine_id, self.ip))

        self.ip_trace.append(self.ip)
        try:
            opcode, operands, length = self.decode(self.ip)
            (instr, mnemonic, _) = self.opcodes[opcode]
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug('%2d %5d: Executing %s %s' % (self.machine_id, self.ip, mnemonic, operands))
            self.count += 1
            if SHOW_PROGRESS and self.count % 10000 == 0:
                sys.stderr.write('.')
                sys.stderr.flush()
            self.instr_count[self.ip] += 1
            default_new_ip = self.ip + length
            new_ip = instr(self, *operands)
        except MachineException as e:
            self.faulted = True
            logger.debug('Machine %d faulted, recent ips %s', self.machine_id, list(self.ip_trace))
            if e.ip is None:
                e.ip = self.ip
            raise
        self.ip = default_new_ip if new_ip is None else new_ip  # Must distinguish 0 and None
        return not self.halted

    def disassemble(self, addr, end_addr):
        '''Lists the instructions in [addr, end_addr) with their execution counts.'''
        lines = []
        while addr < end_addr:
            word = self.mem.read(addr)
            opcode_addr = addr
            if word >= 0 and word % 100 in self.opcodes:
                (_, mnemonic, params) = self.opcodes[word % 100]
                raw = [self.mem.read(addr + ofs) for ofs in range(1, len(params) + 1)]
                code = mnemonic
                if raw:
                    code += '  ' + ','.join(str(p) for p in raw)
                if word >= 100:
                    code += '  ; modes %d' % (word // 100)
                addr += 1 + len(params)
            else:
                code = 'DATA %d' % word
                addr += 1

            line = '%5d  %-30s' % (opcode_addr, code)
            if self.instr_count[opcode_addr]:
                line += '[%6d]' % self.instr_count[opcode_addr]
            lines.append(line.rstrip())
        return lines

    def input(self):
        if self.block_on_eof:
            value = self._input.get()
        elif self.crash_on_eof:
            try:
                value = self._input.get_nowait()
            except Empty:
                raise InputExhaustedException('machine %d ran out of input' % self.machine_id)
        else:
            try:
                value = self._input.get_nowait()
            except Empty:
                logger.debug('%2d        Blocked' % self.machine_id)
                self.blocked_on_input = True
                return None
        self.blocked_on_input = False
        return value

    def output(self, value):
        self._output.put(value)

    # If an opcode returns a non-value, it's the value of the new IP
    # Otherwise the length of the instruction is added to the IP

    def opcode_add(self, a, b, c):
        self.write(c, a + b)

    def opcode_mult(self, a, b, c):
        self.write(c, a * b)

    def opcode_in(self, a):
        value = self.input()
        if value is None:
            return self.ip
        self.write(a, value)

    def opcode_out(self, a):
        self.output(a)

    def opcode_jt(self, a, b):
        if a != 0:
            return b

    def opcode_jf(self, a, b):
        if a == 0:
            return b

    def opcode_lt(self, a, b, c):
        self.write(c, 1 if a < b else 0)

    def opcode_eq(self, a, b, c):
        self.write(c, 1 if a == b else 0)

    def opcode_arb(self, a):
        self.relative_base += a

    def opcode_halt(self):
        self.halted = True
        logger.info('Machine %d halted after %d instructions' % (self.machine_id, self.count))
        return self.ip

    # (function, mnemonic, parameter kinds)
    opcodes = {
        OPCODE_ADD: (opcode_add, 'ADD', PARAM_READ + PARAM_READ + PARAM_WRITE),
        OPCODE_MULT: (opcode_mult, 'MULT', PARAM_READ + PARAM_READ + PARAM_WRITE),
        OPCODE_IN: (opcode_in, 'IN', PARAM_WRITE),
        OPCODE_OUT: (opcode_out, 'OUT', PARAM_READ),
        OPCODE_JT: (opcode_jt, 'JT', PARAM_READ + PARAM_READ),
        OPCODE_JF: (opcode_jf, 'JF', PARAM_READ + PARAM_READ),
        OPCODE_LT: (opcode_lt, 'LT', PARAM_READ + PARAM_READ + PARAM_WRITE),
        OPCODE_EQ: (opcode_eq, 'EQ', PARAM_READ + PARAM_READ + PARAM_WRITE),
        OPCODE_ARB: (opcode_arb, 'ARB', PARAM_READ),
        OPCODE_HALT: (opcode_halt, 'HALT', ''),
    }


def run(program, inputs=()):
    '''Runs program to completion with a fixed list of inputs.

    Returns (memory, outputs) where memory is the final memory contents as a list.
    '''
    machine = Machine(program)
    machine.crash_on_eof = True
    outputs = machine.run(input=list(inputs), output=ReturnSink())
    return machine.mem.dump(), outputs


def run_patched(program, noun, verb):
    '''Runs program with addresses 1 and 2 replaced and returns address 0.'''
    machine = Machine(program)
    machine.write(1, noun)
    machine.write(2, verb)
    machine.crash_on_eof = True
    machine.run(input=[], output=ReturnSink())
    return machine.read(0)


def search_noun_verb(program, target, values=range(100)):
    for noun in values:
        for verb in values:
            if run_patched(program, noun, verb) == target:
                logger.info('Found noun {} verb {} for {}'.format(noun, verb, target))
                return noun, verb
    raise SearchFailedException('no noun and verb produce %d' % target)


def diagnostic(program, system_id):
    '''Runs the diagnostic program for system_id and returns its final code.

    Every output before the final one is a test result and must be zero.
    '''
    _, outputs = run(program, [system_id])
    if not outputs:
        raise DiagnosticException('diagnostic produced no output')
    failed = [i for i, value in enumerate(outputs[:-1]) if value != 0]
    if failed:
        raise DiagnosticException('diagnostic tests failed at outputs %s' % failed)
    return outputs[-1]


class MachineException(Exception):
    '''Base class for everything that can go wrong loading or running a machine.'''
    ip = None

    def __str__(self):
        msg = super().__str__()
        if self.ip is None:
            return msg
        return '%s (ip=%d)' % (msg, self.ip)

class ParseException(MachineException):
    '''Program text could not be turned into a program.'''
    pass

class UnknownOpcodeException(MachineException):
    '''Tried to execute an unknown opcode.'''
    pass

class InvalidAddressingModeException(MachineException):
    '''A parameter mode digit is not valid for that parameter.'''
    pass

class AddressOutOfBoundsException(MachineException):
    '''Tried to access a negative address or one beyond a fixed memory size.'''
    pass

class InvalidRegisterException(MachineException):
    '''Tried to access a register that does not exist.'''
    pass

class InputExhaustedException(MachineException):
    '''Tried to read more input than was supplied.'''
    pass

class MachineHaltedException(MachineException):
    '''Thrown when trying to execute code while the machine is halted.'''
    pass

class MachineCancelledException(MachineException):
    '''The machine was stopped from outside before it halted.'''
    pass

class DeadlockException(MachineException):
    '''A machine waits for input that can never arrive.'''
    pass

class ChannelClosedException(DeadlockException):
    '''Tried to read from a drained channel whose producer has finished.'''
    pass

class MachineBlockedException(DeadlockException):
    '''Thrown when trying to execute code and the machine is blocked on input.'''
    pass

class NetworkException(MachineException):
    '''A machine network finished without producing a result.'''
    pass

class SearchFailedException(MachineException):
    '''No tried input produced the wanted result.'''
    pass

class DiagnosticException(MachineException):
    '''The diagnostic program reported a failing test.'''
    pass


_CLOSED = object()

class Channel(Queue):
    '''Unbounded FIFO carrying values from one machine to another.

    The producer closes the channel when it stops. A reader that drains a
    closed channel gets ChannelClosedException instead of waiting forever, and
    a reader that waits longer than timeout seconds gets MachineBlockedException.
    '''

    def __init__(self, values=(), timeout=None, name=None):
        super().__init__()
        self.timeout = timeout
        self.name = name
        self.closed = False
        for v in values:
            self.put(v)

    def close(self):
        if not self.closed:
            self.closed = True
            super().put(_CLOSED)

    def put(self, item, block=True, timeout=None):
        if self.closed:
            raise ChannelClosedException('channel %s is closed' % self.name)
        super().put(item, block, timeout)

    def get(self, block=True, timeout=None):
        if timeout is None:
            timeout = self.timeout
        try:
            value = super().get(block, timeout)
        except Empty:
            if block:
                raise MachineBlockedException('no value on channel %s after %ss' % (self.name, timeout))
            raise
        if value is _CLOSED:
            # Leave the marker for any later read
            super().put(_CLOSED)
            raise ChannelClosedException('channel %s is closed' % self.name)
        return value


class ReturnSink(object):
    def __init__(self):
        self.values = []

    def put(self, x):
        self.values.append(x)

class StdoutSink(object):
    def __init__(self, ascii=False):
        self.ascii = ascii

    def put(self, x):
        if self.ascii and 32 <= x < 127:
            sys.stdout.write(chr(x))
        elif self.ascii and x == 10:
            sys.stdout.write('\n')
        else:
            sys.stdout.write(str(x) + '\n')

class StdinSource(object):
    '''Reads integers from stdin, comma or whitespace separated, a line at a time.'''
    def __init__(self):
        self._queue = Queue()

    def get(self, nowait=False):
        while self._queue.empty():
            s = sys.stdin.readline()
            if s == '':
                if nowait:
                    raise Empty()
                raise InputExhaustedException('end of stdin')
            for token in s.replace(',', ' ').split():
                try:
                    self._queue.put(int(token))
                except ValueError:
                    raise ParseException('not an integer: %r' % token)
        return self._queue.get()

    def get_nowait(self):
        return self.get(True)

class BaseInput(object):
    def get(self):
        raise NotImplementedError()

    def get_nowait(self):
        return self.get()

class FunctionSource(BaseInput):
    '''Asks a callable for each input value.'''
    def __init__(self, func):
        self.func = func

    def get(self):
        return self.func()

class FunctionSink(object):
    '''Hands each output value to a callable.'''
    def __init__(self, func):
        self.func = func

    def put(self, x):
        self.func(x)
