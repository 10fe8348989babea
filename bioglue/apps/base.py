"""
Basic support for running library as script
"""
import os
import os.path as op
import shutil
import signal
import sys
import logging

from configparser import RawConfigParser, NoOptionError, NoSectionError, ParsingError
from subprocess import PIPE, call, check_call
from optparse import OptionParser as OptionP, OptionGroup, NO_DEFAULT, SUPPRESS_HELP

from more_itertools import collapse
from natsort import natsorted
from rich.console import Console
from rich.logging import RichHandler

from bioglue import __copyright__, __version__

# http://newbebweb.blogspot.com/2012/02/python-head-ioerror-errno-32-broken.html
nobreakbuffer = lambda: signal.signal(signal.SIGPIPE, signal.SIG_DFL)
nobreakbuffer()
os.environ["LC_ALL"] = "C"
BIOGLUEHELP = "bioglue pipeline stages {} [{}]\n".format(__version__, __copyright__)
BIOGLUERC = "~/.biogluerc"


class ActionDispatcher(object):
    """
    This class will be invoked
    a) when a directory is run via __main__, listing all SCRIPTs
    b) when a script is run directly, listing all ACTIONs

    This is controlled through the meta variable, which is automatically
    determined in get_meta().
    """

    def __init__(self, actions):

        self.actions = actions
        if not actions:
            actions = [(None, None)]
        self.valid_actions, self.action_helps = zip(*actions)

    def get_meta(self):
        args = splitall(sys.argv[0])[-3:]
        args[-1] = args[-1].replace(".py", "")
        if args[-1] == "__main__":
            meta = "SCRIPT"
        else:
            meta = "ACTION"
        return meta, args

    def print_help(self):
        meta, args = self.get_meta()
        if meta == "SCRIPT":
            args[-1] = meta
        else:
            args[-1] += " " + meta

        help = "Usage:\n    python -m {0}\n\n\n".format(".".join(args))
        help += "Available {0}s:\n".format(meta)
        max_action_len = max(len(action) for action, ah in self.actions)
        for action, action_help in sorted(self.actions):
            action = action.rjust(max_action_len + 4)
            help += (
                " | ".join((action, action_help[0].upper() + action_help[1:])) + "\n"
            )
        help += "\n" + BIOGLUEHELP

        sys.stderr.write(help)
        sys.exit(1)

    def dispatch(self, globals):
        from difflib import get_close_matches

        meta = "ACTION"  # function is only invoked for listing ACTIONs
        if len(sys.argv) == 1:
            self.print_help()

        action = sys.argv[1]

        if not action in self.valid_actions:
            print("[error] {0} not a valid {1}\n".format(action, meta), file=sys.stderr)
            alt = get_close_matches(action, self.valid_actions)
            print(
                "Did you mean one of these?\n\t{0}\n".format(", ".join(alt)),
                file=sys.stderr,
            )
            self.print_help()

        globals[action](sys.argv[2:])


class OptionParser(OptionP):
    def __init__(self, doc):

        OptionP.__init__(self, doc, epilog=BIOGLUEHELP)

    def parse_args(self, args=None):
        dests = set()
        ol = []
        for g in [self] + self.option_groups:
            ol += g.option_list
        for o in ol:
            if o.dest in dests:
                continue
            self.add_help_from_choices(o)
            dests.add(o.dest)

        return OptionP.parse_args(self, args)

    def add_help_from_choices(self, o):
        if o.help == SUPPRESS_HELP:
            return

        default_tag = "%default"
        assert o.help, "Option {0} do not have help string".format(o)
        help_pf = o.help[:1].upper() + o.help[1:]
        if "[" in help_pf:
            help_pf = help_pf.rsplit("[", 1)[0]
        help_pf = help_pf.strip()

        if o.type == "choice":
            if o.default in (None, NO_DEFAULT):
                default_tag = "guess"
            ctext = "|".join(natsorted(str(x) for x in o.choices))
            if len(ctext) > 100:
                ctext = ctext[:100] + " ... "
            choice_text = "must be one of {0}".format(ctext)
            o.help = "{0}, {1} [default: {2}]".format(help_pf, choice_text, default_tag)
        else:
            o.help = help_pf
            if o.default in (None, NO_DEFAULT):
                default_tag = "disabled"
            if (
                o.get_opt_string() not in ("--help", "--version")
                and o.action != "store_false"
            ):
                o.help += " [default: {0}]".format(default_tag)

    def set_params(self, prog=None, params=""):
        """
        Add --params options for given command line programs
        """
        dest_prog = "to {0}".format(prog) if prog else ""
        self.add_option(
            "--params",
            dest="extra",
            default=params,
            help="Extra parameters to pass {0}".format(dest_prog)
            + " (these WILL NOT be validated)",
        )

    def set_outfile(self, outfile="stdout"):
        """
        Add --outfile options to print out to filename.
        """
        self.add_option("-o", "--outfile", default=outfile, help="Outfile name")

    def set_tmpdir(self, tmpdir=None):
        """
        Add --tmpdir option to keep intermediate files of the external tools
        """
        self.add_option(
            "-T", "--tmpdir", default=tmpdir, help="Directory for intermediate files"
        )

    def set_cpus(self, cpus=0):
        """
        Add --cpus options to specify how many threads to use.
        """
        from multiprocessing import cpu_count

        max_cpus = cpu_count()
        if not 0 < cpus < max_cpus:
            cpus = max_cpus
        self.add_option(
            "--cpus",
            default=cpus,
            type="int",
            help="Number of CPUs to use, 0=unlimited",
        )

    def set_seed(self, seed=None):
        self.add_option(
            "--seed", default=seed, type="int", help="Random seed for reproducibility"
        )

    def set_tag(self, tag=False):
        self.add_option(
            "--tag",
            default=tag,
            action="store_true",
            help="Add tag (/1, /2) to the read name",
        )


def splitall(path):
    allparts = []
    while True:
        path, p1 = op.split(path)
        if not p1:
            break
        allparts.append(p1)
    allparts = allparts[::-1]
    return allparts


def get_module_docstring(filepath):
    """Get module-level docstring of Python module at filepath, e.g. 'path/to/file.py'."""
    with open(filepath) as fp:
        co = compile(fp.read(), filepath, "exec")
    if co.co_consts and isinstance(co.co_consts[0], str):
        docstring = co.co_consts[0]
    else:
        docstring = None
    return docstring


def dmain(mainfile):
    """
    List the scripts that live next to `mainfile`, one line of docstring each.
    """
    cwd = op.dirname(mainfile)
    pyscripts = glob(op.join(cwd, "*.py"))
    actions = []
    for ps in sorted(pyscripts):
        action = op.basename(ps).replace(".py", "")
        if action[0] == "_":  # hidden namespace
            continue
        pd = get_module_docstring(ps)
        action_help = (
            [
                x.rstrip(":.,\n")
                for x in pd.splitlines(True)
                if len(x.strip()) > 10 and x[0] != "%"
            ][0]
            if pd
            else "no docstring found"
        )
        actions.append((action, action_help))

    a = ActionDispatcher(actions)
    a.print_help()


def sh(
    cmd,
    infile=None,
    outfile=None,
    errfile=None,
    append=False,
    background=False,
    log=True,
    silent=False,
    shell="/bin/bash",
    check=False,
):
    """
    simple wrapper for system calls
    """
    if not cmd:
        return 1
    if silent:
        outfile = errfile = "/dev/null"
    if infile:
        cat = "cat"
        if infile.endswith(".gz"):
            cat = "zcat"
        cmd = "{0} {1} |".format(cat, infile) + cmd
    if outfile and outfile != "stdout":
        if outfile.endswith(".gz"):
            cmd += " | gzip"
        tag = ">"
        if append:
            tag = ">>"
        cmd += " {0}{1}".format(tag, outfile)
    if errfile:
        if errfile == outfile:
            errfile = "&1"
        cmd += " 2>{0}".format(errfile)
    if background:
        cmd += " &"

    if log:
        logging.debug(cmd)

    call_func = check_call if check else call
    return call_func(cmd, shell=True, executable=shell)


def Popen(cmd, stdin=None, stdout=PIPE, debug=False, shell="/bin/bash"):
    """
    Capture the cmd stdout output to a file handle.
    """
    from subprocess import Popen as P

    if debug:
        logging.debug(cmd)
    # See: <https://blog.nelhage.com/2010/02/a-very-subtle-bug/>
    proc = P(
        cmd,
        bufsize=1,
        stdin=stdin,
        stdout=stdout,
        shell=True,
        executable=shell,
        universal_newlines=True,
    )
    return proc


def popen(cmd, debug=True, shell="/bin/bash"):
    return Popen(cmd, debug=debug, shell=shell).stdout


def is_exe(fpath):
    return op.isfile(fpath) and os.access(fpath, os.X_OK)


def which(program):
    """
    Emulates the unix which command.

    >>> which("cat")
    "/bin/cat"
    >>> which("nosuchprogram")
    """
    fpath, fname = op.split(program)
    if fpath:
        if is_exe(program):
            return program
    else:
        for path in os.environ["PATH"].split(os.pathsep):
            exe_file = op.join(path, program)
            if is_exe(exe_file):
                return exe_file

    return None


def glob(pathname, pattern=None):
    """
    Wraps around glob.glob(), but return a sorted list.
    """
    import glob as gl

    if pattern:
        pathname = op.join(pathname, pattern)
    return natsorted(gl.glob(pathname))


def mkdir(dirname, overwrite=False):
    """
    Wraps around os.mkdir(), but checks for existence first.
    """
    if op.isdir(dirname):
        if overwrite:
            shutil.rmtree(dirname)
            os.mkdir(dirname)
            logging.debug("Overwrite folder `{0}`.".format(dirname))
        else:
            return False  # Nothing is changed
    else:
        os.makedirs(dirname)
        logging.debug("`{0}` not found. Creating new.".format(dirname))

    return True


def is_newer_file(a, b):
    """
    Check if the file a is newer than file b
    """
    if not (op.exists(a) and op.exists(b)):
        return False
    am = os.stat(a).st_mtime
    bm = os.stat(b).st_mtime
    return am > bm


def listify(a):
    return a if (isinstance(a, list) or isinstance(a, tuple)) else [a]


def flatten(input_list):
    """
    Flatten a nested list of lists/tuples, keeping strings intact.
    """
    return list(collapse(input_list))


def need_update(a, b):
    """
    Check if file a is newer than file b and decide whether or not to update
    file b. Can generalize to two lists.
    """
    a = listify(a)
    b = listify(b)

    return (
        any((not op.exists(x)) for x in b)
        or all((os.stat(x).st_size == 0 for x in b))
        or any(is_newer_file(x, y) for x in a for y in b)
    )


def cleanup(*args):
    """
    Remove a bunch of files or folders in args; ignore if not found.
    """
    for path in flatten(args):
        if op.isdir(path):
            shutil.rmtree(path)
        elif op.exists(path):
            os.remove(path)


def get_config(path):
    config = RawConfigParser()
    try:
        config.read(path)
    except ParsingError as e:
        logging.error(
            "There was a problem reading or parsing "
            "your configuration file: %s" % (e.args[0],),
        )
    return config


def getpath(cmd, name=None, url=None, cfg=BIOGLUERC, warn="exit"):
    """
    Get install locations of the external binaries.
    First check $PATH, then the [Path] section of ~/.biogluerc, e.g.

    [Path]
    exonerate = /opt/exonerate-2.4.0/bin
    """
    p = which(cmd)  # if in PATH, just returns it
    if p:
        return p

    PATH = "Path"
    name = name or cmd
    config = get_config(op.expanduser(cfg))

    try:
        fullpath = config.get(PATH, name)
    except (NoSectionError, NoOptionError):
        fullpath = None

    path = op.join(op.expanduser(fullpath), cmd) if fullpath else None
    if path and is_exe(path):
        return path

    msg = "Cannot find executable `{0}` in $PATH or under [{1}] in `{2}`.".format(
        cmd, PATH, cfg
    )
    if url:
        msg += " Install from <{0}>.".format(url)
    if warn == "exit":
        logging.error(msg)
        sys.exit(1)

    logging.warning(msg)
    return None


def debug(level=logging.DEBUG):
    """
    Turn on the debugging
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True))],
    )


debug()
