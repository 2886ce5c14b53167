'''
Hull painting robot driven by an IntCode machine.

The machine reads the colour of the panel under the robot and answers with
two values: the colour to paint, then the way to turn (0 left, 1 right),
after which the robot moves one panel forward.
'''

import logging

from intcode import FunctionSink, FunctionSource, Machine

logger = logging.getLogger(__name__)

BLACK = 0
WHITE = 1

# up, right, down, left
DIRECTIONS = [(0, -1), (1, 0), (0, 1), (-1, 0)]


class HullPainter(object):

    def __init__(self, program, start_color=BLACK):
        self.machine = Machine(program)
        self.panels = {}
        self.position = (0, 0)
        self.direction = 0
        self.paint_next = True
        if start_color != BLACK:
            self.panels[self.position] = start_color

    def camera(self):
        return self.panels.get(self.position, BLACK)

    def command(self, value):
        if self.paint_next:
            self.panels[self.position] = value
        else:
            self.direction = (self.direction + (1 if value else -1)) % 4
            dx, dy = DIRECTIONS[self.direction]
            self.position = (self.position[0] + dx, self.position[1] + dy)
        self.paint_next = not self.paint_next

    def run(self):
        self.machine.run(input=FunctionSource(self.camera), output=FunctionSink(self.command))
        logger.info('Painted {} panels'.format(len(self.panels)))
        return self.panels


def render(panels, white='#', black=' '):
    if not panels:
        return ''
    xs = [x for x, _ in panels]
    ys = [y for _, y in panels]
    rows = []
    for y in range(min(ys), max(ys) + 1):
        row = ''.join(white if panels.get((x, y), BLACK) == WHITE else black
                      for x in range(min(xs), max(xs) + 1))
        rows.append(row.rstrip())
    return '\n'.join(rows)
