import argparse
import logging
import sys

from hull import WHITE, BLACK, HullPainter, render
from intcode import Machine, MachineException, ReturnSink, StdoutSink, run_patched, search_noun_verb
from network import max_signal, run_chain, run_network
from parsing import parse_intcode, parse_register_program, parse_samples
from regmachine import (
    RegisterMachine, count_ambiguous, deduce_opcodes, divisor_sum_shortcut, last_unique_at,
    run_program, translate,
)


def read_text(filename):
    if filename == '-':
        return sys.stdin.read()
    with open(filename, 'r') as f:
        return f.read()


def parse_ints(text):
    return [int(x) for x in text.split(',') if x.strip()]


def cmd_intcode(args):
    program = parse_intcode(read_text(args.program))
    if args.target is not None:
        noun, verb = search_noun_verb(program, args.target)
        print(100 * noun + verb)
        return
    if args.noun is not None or args.verb is not None:
        print(run_patched(program, args.noun or 0, args.verb or 0))
        return
    machine = Machine(program)
    machine.crash_on_eof = True
    if args.ascii:
        machine.run(input=args.input, output=StdoutSink(ascii=True))
    else:
        for value in machine.run(input=args.input, output=ReturnSink()):
            print(value)
    if args.disassemble:
        for line in machine.disassemble(0, len(machine.program)):
            print(line, file=sys.stderr)


def cmd_amplify(args):
    program = parse_intcode(read_text(args.program))
    if args.phases:
        phases = parse_ints(args.phases)
        if args.feedback:
            print(run_network(program, phases, threaded=not args.round_robin, timeout=args.timeout))
        else:
            print(run_chain(program, phases))
        return
    if args.feedback:
        signal, phases = max_signal(program, range(5, 10), feedback=True,
                                    threaded=not args.round_robin, timeout=args.timeout)
    else:
        signal, phases = max_signal(program, range(5))
    logging.info('Phases %s' % (phases,))
    print(signal)


def cmd_registers(args):
    ip_register, instructions = parse_register_program(read_text(args.program))
    machine = RegisterMachine(instructions, ip_register, args.size)
    if args.disassemble:
        for line in machine.disassemble():
            print(line, file=sys.stderr)
    registers = [0] * args.size
    registers[0] = args.reg0
    machine.reset(registers)
    if args.divisor_sum:
        print(divisor_sum_shortcut(machine))
    elif args.last_unique is not None:
        print(last_unique_at(machine, args.last_unique, args.register))
    elif args.breakpoint is not None:
        regs = machine.run(breakpoints=[args.breakpoint])
        if machine.halted:
            raise MachineException('halted before reaching %d' % args.breakpoint)
        print(regs[args.register])
    else:
        print(machine.run()[args.register])


def cmd_opcodes(args):
    samples, program = parse_samples(read_text(args.samples))
    print(count_ambiguous(samples))
    if program:
        mapping = deduce_opcodes(samples)
        regs = run_program(translate(program, mapping), size=4)
        print(regs[0])


def cmd_paint(args):
    painter = HullPainter(parse_intcode(read_text(args.program)), WHITE if args.start_white else BLACK)
    panels = painter.run()
    if args.start_white:
        print(render(panels))
    else:
        print(len(panels))


def main(argv=None):
    parser = argparse.ArgumentParser(description='Register and IntCode machine runner')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='More logging (repeat for debug)')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('intcode', help='Run an IntCode program')
    p.add_argument('program', help='Program file, - for stdin')
    p.add_argument('--input', '-i', type=int, action='append', default=[], help='Input value (repeatable)')
    p.add_argument('--noun', type=int, help='Value written to address 1 before running')
    p.add_argument('--verb', type=int, help='Value written to address 2 before running')
    p.add_argument('--target', type=int, help='Search noun and verb producing this value at address 0')
    p.add_argument('--ascii', action='store_true', help='Print outputs in the ASCII range as text')
    p.add_argument('--disassemble', action='store_true')
    p.set_defaults(func=cmd_intcode)

    p = sub.add_parser('amplify', help='Run a chain or feedback ring of IntCode machines')
    p.add_argument('program')
    p.add_argument('--phases', help='Comma separated phase settings (default: search for the best)')
    p.add_argument('--feedback', action='store_true', help='Connect the machines in a ring')
    p.add_argument('--round-robin', action='store_true', help='Interleave machines in one thread')
    p.add_argument('--timeout', type=float, help='Seconds a machine may wait for input')
    p.set_defaults(func=cmd_amplify)

    p = sub.add_parser('registers', help='Run a register machine program')
    p.add_argument('program')
    p.add_argument('--size', type=int, default=6, help='Number of registers')
    p.add_argument('--reg0', type=int, default=0, help='Initial value of register 0')
    p.add_argument('--register', type=int, default=0, help='Register to print')
    p.add_argument('--breakpoint', type=int, help='Stop when the ip reaches this instruction')
    p.add_argument('--last-unique', type=int, metavar='ADDR',
                   help='Print the last new value of --register at ADDR before one repeats')
    p.add_argument('--divisor-sum', action='store_true',
                   help='Stop when the ip reaches 1 and sum the divisors of the register instruction 4 compares')
    p.add_argument('--disassemble', action='store_true')
    p.set_defaults(func=cmd_registers)

    p = sub.add_parser('opcodes', help='Deduce register opcodes from samples and run the program')
    p.add_argument('samples')
    p.set_defaults(func=cmd_opcodes)

    p = sub.add_parser('paint', help='Run the hull painting robot')
    p.add_argument('program')
    p.add_argument('--start-white', action='store_true')
    p.set_defaults(func=cmd_paint)

    args = parser.parse_args(argv)
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(args.verbose, 2)]
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    try:
        args.func(args)
    except (MachineException, ValueError, OSError) as e:
        print('Error: %s' % e, file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
