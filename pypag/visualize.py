import math
import os

import matplotlib as mpl

if os.environ.get('DISPLAY', '') == '':
    mpl.use('Agg')
import matplotlib.pyplot as plt
import networkx as nx
import numpy as np
import seaborn as sns

from pypag.graphs import PAG, Endpoint
from pypag.utils import group_by

_MARKERS = {Endpoint.ARROW: '>', Endpoint.CIRCLE: 'o'}


def endpoint_marks(pag: PAG, pos, offset=0.12):
    """(endpoint, x, y, angle in degrees) for every arrow and circle, placed near the node it marks"""
    marks = []
    for e in pag.edges():
        for near, far, endpoint in ((e.node1, e.node2, e.endpoint1), (e.node2, e.node1, e.endpoint2)):
            if endpoint not in _MARKERS:
                continue
            (x0, y0), (x1, y1) = pos[far], pos[near]
            length = math.hypot(x1 - x0, y1 - y0) or 1.0
            t = max(0.0, 1.0 - offset / length)
            angle = math.degrees(math.atan2(y1 - y0, x1 - x0))
            marks.append((endpoint, x0 + t * (x1 - x0), y0 + t * (y1 - y0), angle))
    return marks


def visualize_pag(pag: PAG, filename, title='untitled PAG', **options):
    """Draw a PAG with its endpoint marks and save it to `filename`

    Returns
    -------
    The options used, which can be passed again to draw another graph over the same nodes with the same layout.
    """
    sns.set()
    sns.set_style(style='white')

    fig, ax = plt.subplots(figsize=(options.get('figure_width', 6), options.get('figure_height', 6)))
    G = pag.as_networkx_graph()
    pos = options.get('pos', nx.circular_layout(G))
    pal = options.get('pal', sns.color_palette(options.get('palette', "Paired"), 3))

    factor = options.get('factor', max(1, math.log(1 + len(pag) / math.log(8))))

    if 'xmin' in options and 'xmax' in options:
        plt.xlim((options.get('xmin'), options.get('xmax')))
    if 'ymin' in options and 'ymax' in options:
        plt.ylim((options.get('ymin'), options.get('ymax')))

    if len(pag):
        xy = np.asarray([pos[v] for v in pag.nodes])
        ax.scatter(xy[:, 0], xy[:, 1], s=600 / factor, c=[pal[0]], alpha=1, linewidths=0).set_zorder(2)
        nx.draw_networkx_labels(G, pos, labels={v: v.name for v in pag.nodes}, font_size=10 - factor, ax=ax)
    if pag.num_edges():
        nx.draw_networkx_edges(G, pos, arrows=False, ax=ax, width=0.8)

    for endpoint, marks in group_by(endpoint_marks(pag, pos, options.get('offset', 0.12)), lambda m: m[0].value):
        for _, x, y, angle in marks:
            marker = (3, 0, angle - 90) if Endpoint(endpoint) == Endpoint.ARROW else 'o'
            ax.scatter([x], [y], s=120 / factor, marker=marker,
                       c=[pal[1] if Endpoint(endpoint) == Endpoint.ARROW else 'white'],
                       edgecolors=[pal[1]], linewidths=1).set_zorder(3)

    xmin, xmax = plt.xlim()
    ymin, ymax = plt.ylim()
    plt.title(title)
    plt.tick_params(axis='both', which='both', bottom=False, top=False, left=False, labelleft=False,
                    labelbottom=False)
    fig.savefig(filename, transparent=True, bbox_inches='tight', pad_inches=0.02)
    plt.close()
    return {'pos': pos, 'pal': pal, 'factor': factor, 'xmin': xmin, 'xmax': xmax, 'ymin': ymin, 'ymax': ymax}
