# tests/fixtures/taskflow_tasks.py
"""Tasks de exemplo usadas pelos testes de CLI e e2e (importadas como `modulo:atributo`)."""

from atlas_taskflow import Inherit, TaskKind, choice_param, float_param, int_param, task


@task(params=(int_param("seed", 0),), kind=TaskKind.DIAGNOSTIC)
def prepare(ctx):
    """Gera um dataset determinístico a partir da seed."""
    ctx.save(list(range(ctx["seed"], ctx["seed"] + 3)))


@task(
    params=(float_param("lr", 0.1), choice_param("model", ["linear", "tree"])),
    inherits=(Inherit(prepare, ("seed",)),),
    requires=lambda inst: prepare(),
    kind=TaskKind.TRAIN,
)
def train(ctx):
    """Treino simulado."""
    data = ctx.inputs.load()
    ctx.log("training", rows=len(data))
    ctx.save({"model": ctx["model"], "lr": ctx["lr"], "score": sum(data) * ctx["lr"]})


@task(inherits=(Inherit(train),), requires=lambda inst: {"model": train()}, kind=TaskKind.EVALUATE)
def evaluate(ctx):
    result = ctx.inputs["model"].load()
    ctx.save({"score": result["score"], "seed": ctx["seed"]})


@task(requires=lambda inst: prepare())
def broken(ctx):
    raise RuntimeError("this task always fails")


@task(requires=lambda inst: loop_b())
def loop_a(ctx):
    ctx.save(None)


@task(requires=lambda inst: loop_a())
def loop_b(ctx):
    ctx.save(None)


train_fast = train(lr=0.5)

not_a_task = 42
