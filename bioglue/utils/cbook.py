"""
Useful recipes shared by the command wrappers and the formatters.
"""
import os.path as op
import logging

from functools import wraps


def depends(func):
    """
    Decorator to perform check on infile and outfile. When infile is not present, issue
    warning, and when outfile is present, skip function calls.
    """
    from bioglue.apps.base import need_update, listify

    infile = "infile"
    outfile = "outfile"

    @wraps(func)
    def wrapper(*args, **kwargs):
        assert outfile in kwargs, "You need to specify `outfile=` on function call"
        infilename = []
        if infile in kwargs:
            infilename = listify(kwargs[infile])
            for x in infilename:
                assert op.exists(x), "The specified infile `{0}` does not exist".format(
                    x
                )

        outfilename = kwargs[outfile]
        if need_update(infilename, outfilename):
            func(*args, **kwargs)
        else:
            msg = "File `{0}` exists. Computation skipped.".format(outfilename)
            logging.debug(msg)

        outfilename = listify(outfilename)
        for x in outfilename:
            assert op.exists(x), "Something went wrong, `{0}` not found".format(x)

        return outfilename[0] if len(outfilename) == 1 else outfilename

    return wrapper


def percentage(a, b, precision=1, mode=0):
    """
    >>> percentage(100, 200)
    '100 of 200 (50.0%)'
    """
    _a, _b = a, b
    pct = "{0:.{1}f}%".format(a * 100.0 / b, precision) if b else "NA"
    if mode == 0:
        return "{0} of {1} ({2})".format(_a, _b, pct)
    return "{0} ({1})".format(_a, pct)


def thousands(x):
    """
    >>> thousands(12345)
    '12,345'
    """
    return "{0:,}".format(x)


SUFFIXES = {
    1000: ["", "Kb", "Mb", "Gb", "Tb", "Pb", "Eb", "Zb"],
    1024: ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB"],
}


def human_size(size, a_kilobyte_is_1024_bytes=False, precision=1):
    """Convert a file size to human-readable form.

    >>> print(human_size(1000000000000, True))
    931.3GiB
    >>> print(human_size(1000000000000))
    1.0Tb
    >>> print(human_size(300))
    300.0
    """
    if size < 0:
        raise ValueError("number must be non-negative")

    multiple = 1024 if a_kilobyte_is_1024_bytes else 1000
    for suffix in SUFFIXES[multiple]:
        if size >= multiple:
            size /= float(multiple)
        else:
            break

    return "{0:.{1}f}{2}".format(size, precision, suffix)
