"""
Tests for the IntCode machine: memory, decoding, opcodes, I/O and faults.
"""

import io

import pytest

from intcode import (
    AddressOutOfBoundsException, Channel, ChannelClosedException, DiagnosticException,
    FunctionSink, FunctionSource, InputExhaustedException, InvalidAddressingModeException,
    Machine, MachineBlockedException, MachineHaltedException, Memory, ReturnSink,
    SearchFailedException, UnknownOpcodeException,
    diagnostic, run, run_patched, search_noun_verb,
)

QUINE = [109, 1, 204, -1, 1001, 100, 1, 100, 1008, 100, 16, 101, 1006, 101, 0, 99]

COMPARE_TO_8 = [
    3, 21, 1008, 21, 8, 20, 1005, 20, 22, 107, 8, 21, 20, 1006, 20, 31,
    1106, 0, 36, 98, 0, 0, 1002, 21, 125, 20, 4, 20, 1105, 1, 46, 104,
    999, 1105, 1, 46, 1101, 1000, 1, 20, 4, 20, 1105, 1, 46, 98, 99,
]


def test_memory_reads_zero_when_unwritten():
    mem = Memory([5, 6])
    assert mem.read(1) == 6
    assert mem.read(10 ** 9) == 0
    mem.write(1000, 7)
    assert mem.read(1000) == 7
    assert len(mem) == 1001


def test_memory_rejects_negative_address():
    with pytest.raises(AddressOutOfBoundsException):
        Memory().read(-1)
    with pytest.raises(AddressOutOfBoundsException):
        Memory().write(-3, 1)


def test_fixed_size_memory():
    mem = Memory([1, 2, 3], size=4)
    mem.write(3, 9)
    assert mem.dump() == [1, 2, 3, 9]
    with pytest.raises(AddressOutOfBoundsException):
        mem.read(4)


def test_add_and_multiply():
    memory, outputs = run([1, 9, 10, 3, 2, 3, 11, 0, 99, 30, 40, 50])
    assert memory[0] == 3500
    assert memory[3] == 70
    assert outputs == []


@pytest.mark.parametrize('program, addr, expected', [
    ([1, 0, 0, 0, 99], 0, 2),
    ([2, 3, 0, 3, 99], 3, 6),
    ([2, 4, 4, 5, 99, 0], 5, 9801),
    ([1, 1, 1, 4, 99, 5, 6, 0, 99], 0, 30),
])
def test_small_programs(program, addr, expected):
    memory, _ = run(program)
    assert memory[addr] == expected


def test_immediate_mode_matches_position_mode():
    immediate, _ = run([1002, 4, 3, 4, 33])
    position, _ = run([2, 4, 6, 4, 33, 99, 3])
    assert immediate[4] == position[4] == 99


def test_negative_immediate():
    memory, _ = run([1101, 100, -1, 4, 0])
    assert memory[4] == 99


def test_decode_resolves_modes():
    machine = Machine([1002, 4, 3, 4, 33])
    assert machine.decode(0) == (2, [33, 3, 4], 4)


def test_decode_relative_write_gives_address():
    machine = Machine([21101, 1, 2, 5, 99])
    machine.relative_base = 10
    assert machine.decode(0) == (1, [1, 2, 15], 4)


def test_step_only_writes_output_operand():
    machine = Machine([1, 5, 6, 7, 99, 2, 3, 0, 11, 12])
    machine.init_io([], ReturnSink())
    before = machine.mem.dump()
    machine.step()
    after = machine.mem.dump()
    assert [i for i in range(len(before)) if before[i] != after[i]] == [7]
    assert after[7] == 5
    assert machine.ip == 4


@pytest.mark.parametrize('value, expected', [(7, 999), (8, 1000), (9, 1001)])
def test_jumps_and_comparisons(value, expected):
    _, outputs = run(COMPARE_TO_8, [value])
    assert outputs == [expected]


@pytest.mark.parametrize('program', [
    [3, 9, 8, 9, 10, 9, 4, 9, 99, -1, 8],
    [3, 3, 1108, -1, 8, 3, 4, 3, 99],
])
def test_equal_to_8(program):
    assert run(program, [8])[1] == [1]
    assert run(program, [5])[1] == [0]


def test_relative_base_quine():
    _, outputs = run(QUINE)
    assert outputs == QUINE


def test_relative_base_read():
    machine = Machine([109, 19, 204, -34, 99])
    machine.relative_base = 2000
    machine.mem.write(1985, 77)
    assert machine.run(input=[], output=ReturnSink()) == [77]
    assert machine.relative_base == 2019


def test_large_numbers():
    assert run([1102, 34915192, 34915192, 7, 4, 7, 99, 0])[1] == [1219070632396864]
    assert run([104, 1125899906842624, 99])[1] == [1125899906842624]


def test_unknown_opcode():
    with pytest.raises(UnknownOpcodeException) as excinfo:
        run([1, 0, 0, 0, 42])
    assert excinfo.value.ip == 4
    assert 'ip=4' in str(excinfo.value)


def test_negative_word_is_unknown_opcode():
    with pytest.raises(UnknownOpcodeException):
        run([-99])


def test_invalid_mode_digit():
    with pytest.raises(InvalidAddressingModeException):
        run([301, 0, 0, 0, 99])


def test_immediate_mode_write_is_invalid():
    machine = Machine([11101, 1, 1, 0, 99])
    with pytest.raises(InvalidAddressingModeException):
        machine.run(input=[], output=ReturnSink())
    assert machine.faulted
    assert not machine.halted


def test_negative_address_faults():
    with pytest.raises(AddressOutOfBoundsException) as excinfo:
        run([1, -1, 0, 0, 99])
    assert excinfo.value.ip == 0


def test_dense_memory_overflow():
    machine = Machine([1101, 1, 1, 10, 99], memory_size=5)
    with pytest.raises(AddressOutOfBoundsException):
        machine.run(input=[], output=ReturnSink())


def test_sparse_memory_growth():
    memory, _ = run([1101, 1, 1, 1000, 99])
    assert len(memory) == 1001
    assert memory[1000] == 2


def test_input_exhausted():
    with pytest.raises(InputExhaustedException):
        run([3, 0, 3, 0, 99], [5])


def test_step_after_halt():
    machine = Machine([99])
    machine.run(input=[], output=ReturnSink())
    assert machine.halted
    with pytest.raises(MachineHaltedException):
        machine.step()


def test_pause_on_missing_input():
    machine = Machine([3, 5, 4, 5, 99, 0])
    assert machine.run_until_next_io() is None
    assert machine.blocked_on_input
    assert machine.ip == 0
    assert machine.run_until_next_io(feed_input=[42]) == 42
    assert machine.run_until_next_io() is None
    assert machine.halted


def test_callback_io():
    seen = []
    machine = Machine([3, 0, 1002, 0, 2, 0, 4, 0, 99])
    machine.run(input=FunctionSource(lambda: 21), output=FunctionSink(seen.append))
    assert seen == [42]


def test_reset_restores_program():
    machine = Machine([1101, 1, 1, 0, 99])
    machine.run(input=[], output=ReturnSink())
    assert machine.read(0) == 2
    machine.reset()
    assert machine.read(0) == 1101
    assert machine.ip == 0 and not machine.halted


def test_run_patched_and_search():
    program = [1, 9, 10, 3, 2, 3, 11, 0, 99, 30, 40, 50]
    assert run_patched(program, 9, 10) == 3500
    assert search_noun_verb(program, 3500, values=range(12)) == (9, 10)
    with pytest.raises(SearchFailedException):
        search_noun_verb(program, 1, values=range(3))


def test_diagnostic():
    assert diagnostic([3, 0, 4, 0, 99], 5) == 5
    with pytest.raises(DiagnosticException):
        diagnostic([104, 1, 104, 7, 99], 1)


def test_disassemble():
    machine = Machine([1002, 4, 3, 4, 33])
    machine.run(input=[], output=ReturnSink())
    lines = machine.disassemble(0, 5)
    assert lines[0].split()[:3] == ['0', 'MULT', '4,3,4']
    assert lines[0].endswith('[     1]')
    assert lines[1].split() == ['4', 'HALT', '[', '1]']


def test_channel_close():
    channel = Channel([1, 2], name='c')
    channel.close()
    assert channel.get() == 1
    assert channel.get() == 2
    with pytest.raises(ChannelClosedException):
        channel.get()
    with pytest.raises(ChannelClosedException):
        channel.get_nowait()
    with pytest.raises(ChannelClosedException):
        channel.put(3)


def test_channel_timeout():
    channel = Channel(timeout=0.05)
    with pytest.raises(MachineBlockedException):
        channel.get()


def test_default_io_uses_stdin_and_stdout(monkeypatch, capsys):
    monkeypatch.setattr('sys.stdin', io.StringIO('3, 4\n'))
    machine = Machine([3, 11, 3, 12, 1, 11, 12, 13, 4, 13, 99, 0, 0, 0])
    machine.run()
    assert capsys.readouterr().out == '7\n'
    assert machine.halted


def test_stdin_exhausted_pauses_machine(monkeypatch):
    monkeypatch.setattr('sys.stdin', io.StringIO(''))
    machine = Machine([3, 0, 99])
    machine.run()
    assert machine.blocked_on_input
    assert machine.ip == 0
