import concurrent.futures
import itertools
import logging
import threading

from intcode import (
    Channel, ChannelClosedException, Machine, MachineBlockedException,
    NetworkException, ReturnSink,
)

logger = logging.getLogger(__name__)


def wire_up_serial(machines, input, output, timeout=None):
    '''Connects multiple machines with each other in a sequence.'''
    pipes = [Channel(timeout=timeout, name='pipe%d' % i) for i in range(len(machines) - 1)]
    for i in range(len(machines)):
        machines[i].init_io(pipes[i-1] if i > 0 else input, pipes[i] if i < len(machines) - 1 else output)
    return pipes


def wire_up_ring(machines, phases, signal=0, timeout=None):
    '''Connects machines in a ring, machine i feeding machine i + 1.

    Every inbound channel starts with the machine's phase, the first one also
    with the initial signal. The last machine writes to a separate channel so
    the caller can observe the values before passing them on to the first.
    Returns (inbound channels, ring output channel).
    '''
    inbound = [Channel([phase], timeout=timeout, name='in%d' % i) for i, phase in enumerate(phases)]
    inbound[0].put(signal)
    ring_out = Channel(name='ring')
    for i, machine in enumerate(machines):
        machine.init_io(inbound[i], inbound[i+1] if i < len(machines) - 1 else ring_out)
    return inbound, ring_out


def parallel_executor(machines, after_round=None):
    '''Executes one instruction at a time across all machines in round robin fashion,
    until they're all halted. Assumes the IO has already been setup.
    after_round is called after every round and returns True if it moved any values.
    Returns an array, one element per input machine. If the output is a ReturnSink
    for a machine, the corresponding element will contain that list, otherwise None.
    '''
    for machine in machines:
        machine.block_on_eof = False
        machine.crash_on_eof = False

    while True:
        all_halted = True
        all_blocked = True
        for machine in machines:
            if not machine.halted:
                machine.step()
                if not machine.blocked_on_input:
                    all_blocked = False
                all_halted = False
        if after_round is not None and after_round():
            all_blocked = False
        if all_halted:
            break
        if all_blocked:
            blocked = [m.machine_id for m in machines if not m.halted]
            raise MachineBlockedException('machines %s all blocked on input' % blocked)

    return [_returned_values(m) for m in machines]


def threaded_executor(machines, supervisor=None):
    '''Executes all machines in separate threads until they're all halted.

    Each machine closes its output when it stops, so a machine waiting on a
    finished producer fails instead of hanging. If a machine faults the others
    are cancelled and the first fault is raised once all threads are done.

    If given, supervisor is called in the calling thread while the machines run
    and its return value is returned. Otherwise returns an array, one element per
    input machine, holding the ReturnSink values or None.
    '''
    cancel = threading.Event()
    failures = []
    for machine in machines:
        machine.block_on_eof = True
        machine.cancel_event = cancel

    with concurrent.futures.ThreadPoolExecutor(max_workers=len(machines)) as executor:
        futures = [executor.submit(_run_machine, m, cancel, failures) for m in machines]
        result = supervisor() if supervisor is not None else None

    if failures:
        raise failures[0]
    if supervisor is None:
        result = [f.result() for f in futures]
    return result


def _run_machine(machine, cancel, failures):
    try:
        machine.run_until_halted()
    except Exception as e:
        logger.warning('Machine %d failed: %s' % (machine.machine_id, e))
        failures.append(e)
        cancel.set()
    finally:
        machine.close_output()
    return _returned_values(machine)


def _returned_values(machine):
    if isinstance(machine._output, ReturnSink):
        return machine._output.values
    return None


def _check_phases(phases, ring_size):
    if not phases:
        raise ValueError('at least one phase setting is needed')
    if ring_size is not None and ring_size != len(phases):
        raise ValueError('%d phase settings for a ring of %d machines' % (len(phases), ring_size))


def run_chain(program, phases, signal=0, threaded=False, timeout=None):
    '''Runs one machine per phase in sequence, each one's output feeding the next.

    Every machine first reads its phase and then the incoming signal.
    Returns the last value produced by the final machine.
    '''
    _check_phases(phases, None)
    machines = [Machine(program, machine_id=i) for i in range(len(phases))]
    sink = ReturnSink()
    seed = Channel([phases[0], signal], name='chain')
    seed.close()
    pipes = wire_up_serial(machines, seed, sink, timeout)
    for pipe, phase in zip(pipes, phases[1:]):
        pipe.put(phase)

    if threaded:
        threaded_executor(machines)
    else:
        parallel_executor(machines)

    if not sink.values:
        raise NetworkException('chain produced no output')
    return sink.values[-1]


def run_network(program, phases, ring_size=None, signal=0, threaded=True, timeout=None):
    '''Runs a feedback ring of machines, one per phase setting.

    Every value the last machine produces is passed on to the first one and
    remembered. Once the last machine halts the most recent of those values is
    the result. timeout bounds how long a threaded machine waits for input.
    '''
    _check_phases(phases, ring_size)
    machines = [Machine(program, machine_id=i) for i in range(len(phases))]
    inbound, ring_out = wire_up_ring(machines, phases, signal, timeout)
    observed = []

    def forward():
        while True:
            try:
                value = ring_out.get()
            except ChannelClosedException:
                break
            observed.append(value)
            logger.debug('Ring output {}'.format(value))
            if not inbound[0].closed:
                inbound[0].put(value)
        inbound[0].close()

    def forward_round():
        moved = False
        while not ring_out.empty():
            value = ring_out.get_nowait()
            observed.append(value)
            moved = True
            if not machines[-1].halted:
                inbound[0].put(value)
        return moved

    if threaded:
        threaded_executor(machines, forward)
    else:
        parallel_executor(machines, forward_round)

    if not observed:
        raise NetworkException('ring produced no output')
    return observed[-1]


def max_signal(program, phase_values, feedback=False, **kwargs):
    '''Tries every ordering of phase_values and returns (signal, phases) for the largest signal.'''
    best = None
    for phases in itertools.permutations(phase_values):
        if feedback:
            signal = run_network(program, list(phases), **kwargs)
        else:
            signal = run_chain(program, list(phases), **kwargs)
        if best is None or signal > best[0]:
            best = (signal, phases)
    if best is None:
        raise NetworkException('no phase settings to try')
    logger.info('Best signal {} with phases {}'.format(*best))
    return best
